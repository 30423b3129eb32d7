"""Category rule table loaded from JSON rule files.

Rule file layout (one or more files; categories keep file order):

    {
      "categories": [
        {"name": "Database",
         "exact": ["DATABASE_URL"], "prefix": ["PG"], "suffix": ["_DB"],
         "contains": ["POSTGRES", "MONGO"]},
        ...
      ]
    }

Matching is first-match-wins over the flattened rule list: categories in
order, and inside a category exact, then prefix, then suffix, then contains.
"""
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Set

from .errors import RuleLoadError
from .models import UNCLASSIFIED

logger = logging.getLogger(__name__)

DEFAULT_RULES_DIR = Path(__file__).parent.parent / "rules"
MATCH_TYPES = ('exact', 'prefix', 'suffix', 'contains')
ALLOW_LIST_FILENAME = "allowlist.json"


@dataclass(frozen=True)
class CategoryRule:
    """A normalized category rule."""
    pattern: str
    match_type: str  # 'exact', 'prefix', 'suffix', 'contains'
    category: str

    def matches(self, name: str) -> bool:
        if self.match_type == 'exact':
            return name == self.pattern
        if self.match_type == 'prefix':
            return name.startswith(self.pattern)
        if self.match_type == 'suffix':
            return name.endswith(self.pattern)
        return self.pattern in name


class CategoryRegistry:
    """Ordered category rules, loaded from a rules file or directory."""

    def __init__(self, rules: Optional[Iterable[CategoryRule]] = None):
        self.rules: List[CategoryRule] = list(rules or ())

    @classmethod
    def from_path(cls, path: Optional[Path] = None) -> 'CategoryRegistry':
        """Load rules from a JSON file, or every *.json in a directory (sorted by name).

        A file passed explicitly must load; files found in a directory are
        skipped with a warning when malformed.

        Raises:
            RuleLoadError: If an explicit rule file is missing or malformed
        """
        path = Path(path) if path is not None else DEFAULT_RULES_DIR
        registry = cls()

        if path.is_file():
            registry.rules.extend(_load_rule_file(path))
            return registry

        if not path.is_dir():
            raise RuleLoadError(str(path), "no such file or directory")

        for json_file in sorted(path.glob("*.json")):
            if json_file.name == ALLOW_LIST_FILENAME:
                continue
            try:
                registry.rules.extend(_load_rule_file(json_file))
            except RuleLoadError as e:
                logger.warning("%s; skipping", e)

        if not registry.rules:
            logger.warning("No category rules found in %s", path)
        return registry

    @property
    def categories(self) -> List[str]:
        """Category names in rule order, without duplicates."""
        seen: List[str] = []
        for rule in self.rules:
            if rule.category not in seen:
                seen.append(rule.category)
        return seen

    def categorize(self, name: str) -> str:
        """Return the category of the first matching rule, or Unclassified."""
        for rule in self.rules:
            if rule.matches(name):
                return rule.category
        return UNCLASSIFIED

    def category_order(self, category: str) -> int:
        """Position of a category in the table; Unclassified sorts last."""
        categories = self.categories
        if category in categories:
            return categories.index(category)
        return len(categories)


def _load_rule_file(path: Path) -> List[CategoryRule]:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise RuleLoadError(str(path), f"invalid JSON: {e}")
    except OSError as e:
        raise RuleLoadError(str(path), str(e))

    if not isinstance(data, dict) or not isinstance(data.get('categories'), list):
        raise RuleLoadError(str(path), "expected an object with a 'categories' list")

    rules = []
    for entry in data['categories']:
        if not isinstance(entry, dict) or not entry.get('name'):
            raise RuleLoadError(str(path), f"category entry without a name: {entry!r}")
        for match_type in MATCH_TYPES:
            for pattern in entry.get(match_type, []):
                rules.append(CategoryRule(pattern=pattern, match_type=match_type,
                                          category=entry['name']))
    return rules


def load_allow_list(path: Optional[Path] = None, extra: Iterable[str] = ()) -> Set[str]:
    """Load reserved names exempt from UNUSED flagging.

    Args:
        path: JSON file of the form {"reserved": [...]}; defaults to the bundled list
        extra: Additional names supplied by the caller

    Raises:
        RuleLoadError: If the file is missing or malformed
    """
    path = Path(path) if path is not None else DEFAULT_RULES_DIR / ALLOW_LIST_FILENAME
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise RuleLoadError(str(path), f"invalid JSON: {e}")
    except OSError as e:
        raise RuleLoadError(str(path), str(e))

    reserved = data.get('reserved') if isinstance(data, dict) else None
    if not isinstance(reserved, list):
        raise RuleLoadError(str(path), "expected an object with a 'reserved' list")
    return set(reserved) | set(extra)

