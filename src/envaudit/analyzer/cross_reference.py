"""Join declarations and usages into one record per symbol."""
import logging
from collections.abc import Mapping
from typing import Dict, Iterable, Iterator, List, Optional, Set

from .models import DYNAMIC, MISSING, UNUSED, CrossReferenceRecord, Declaration, Usage

logger = logging.getLogger(__name__)


class CrossReferenceIndex(Mapping):
    """Read-only mapping name -> CrossReferenceRecord, iterated in name order.

    Names are matched verbatim (case-sensitive). Dynamic usages carry no name
    and are kept aside as the coverage caveat.
    """

    def __init__(self, records: Dict[str, CrossReferenceRecord], dynamic_usages: List[Usage]):
        self._records = {name: records[name] for name in sorted(records)}
        self.dynamic_usages = dynamic_usages

    @classmethod
    def build(cls, declarations: Mapping[str, List[Declaration]], usages: Iterable[Usage],
              allow_list: Optional[Iterable[str]] = None) -> 'CrossReferenceIndex':
        """Build the index.

        Args:
            declarations: name -> declarations ordered by layer
            usages: every usage from the scanner
            allow_list: names exempt from UNUSED

        Returns:
            CrossReferenceIndex with MISSING / UNUSED flags set
        """
        allowed: Set[str] = set(allow_list or ())
        by_name: Dict[str, List[Usage]] = {}
        dynamic_usages: List[Usage] = []

        for usage in usages:
            if usage.kind == DYNAMIC or usage.name is None:
                dynamic_usages.append(usage)
                continue
            by_name.setdefault(usage.name, []).append(usage)

        records: Dict[str, CrossReferenceRecord] = {}
        for name in set(declarations) | set(by_name):
            name_declarations = tuple(sorted(declarations.get(name, ()), key=lambda d: d.layer))
            name_usages = tuple(sorted(by_name.get(name, ()), key=lambda u: u.sort_key))

            flags = set()
            if name_usages and not name_declarations:
                flags.add(MISSING)
            if name_declarations and not name_usages and name not in allowed:
                flags.add(UNUSED)

            records[name] = CrossReferenceRecord(
                name=name,
                declarations=name_declarations,
                usages=name_usages,
                flags=frozenset(flags),
            )

        dynamic_usages.sort(key=lambda u: u.sort_key)
        index = cls(records, dynamic_usages)
        logger.debug("Indexed %d symbols (%d missing, %d unused, %d dynamic usages)",
                     len(index), len(index.missing), len(index.unused), len(dynamic_usages))
        return index

    def __getitem__(self, name: str) -> CrossReferenceRecord:
        return self._records[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    @property
    def records(self) -> List[CrossReferenceRecord]:
        return list(self._records.values())

    @property
    def declared_names(self) -> List[str]:
        return [name for name, record in self._records.items() if record.is_declared]

    @property
    def missing(self) -> List[str]:
        return [name for name, record in self._records.items() if MISSING in record.flags]

    @property
    def unused(self) -> List[str]:
        return [name for name, record in self._records.items() if UNUSED in record.flags]

    @property
    def dynamic_usage_count(self) -> int:
        return len(self.dynamic_usages)
