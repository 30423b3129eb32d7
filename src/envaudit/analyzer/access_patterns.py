"""The fixed grammar of configuration access patterns.

Every shape the scanner understands is listed here; anything else is not a
usage. Matching is purely lexical and language-agnostic, so JavaScript,
TypeScript and Python shapes are all tried against every file.

JavaScript / TypeScript (`process.env` or `import.meta.env`):
    process.env.NAME / process.env?.NAME         -> direct
    process.env["NAME"] / process.env[`NAME`]    -> bracketLiteral
    process.env[expr]                            -> dynamic
    process.env.hasOwnProperty(...)              -> not a usage (method call)
    const { NAME, OTHER: local } = process.env   -> destructure (one per name)
    const { NAME }: Env = process.env            -> destructure (annotation ignored)
    const { ...rest } = process.env              -> dynamic

Python:
    os.environ["NAME"], os.getenv("NAME"), os.environ.get("NAME") -> bracketLiteral
    os.getenv("NAME", default), os.environ.get("NAME", default)   -> defaulted
    os.environ[expr], os.getenv(expr)                             -> dynamic

Contextual refinements (`||`, `??`, `or` fallbacks and template
interpolation) are applied by the scanner on top of these raw matches.
"""
import re
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

from .models import BRACKET_LITERAL, DEFAULTED, DESTRUCTURE, DIRECT, DYNAMIC

NAME = r'[A-Za-z_][A-Za-z0-9_]*'

JS_SOURCE = r'(?<![\w$.])(?:process\s*\.\s*env|import\s*\.\s*meta\s*\.\s*env)'

MEMBER_ACCESS = re.compile(JS_SOURCE + r'\s*\??\.\s*(?P<name>' + NAME + r')(?![\w$])(?!\s*\()')
JS_SUBSCRIPT = re.compile(JS_SOURCE + r'\s*(?:\?\.\s*)?\[')
DESTRUCTURE_BINDING = re.compile(
    r'\{(?P<body>[^{}]*)\}\s*(?::[^=;]+?)?=\s*' + JS_SOURCE + r'(?![\w$]|\s*(?:\?\.|\.|\[))'
)

PY_SUBSCRIPT = re.compile(r'(?<![\w.])(?:os\s*\.\s*)?environ\s*\[')
PY_CALL = re.compile(
    r'(?<![\w.])(?:os\s*\.\s*getenv|(?:os\s*\.\s*)?environ\s*\.\s*get|getenv)\s*\('
)

# A string-literal key: quotes match, no escapes, no interpolation
LITERAL_KEY = re.compile(r'\s*(?P<quote>[\'"`])(?P<name>[^\'"`\\\n$]+)(?P=quote)\s*')

DESTRUCTURE_ENTRY = re.compile(
    r'(?P<quote>[\'"]?)(?P<name>' + NAME + r')(?P=quote)'
    r'\s*(?::\s*(?P<local>[A-Za-z_$][\w$]*))?\s*(?:=[\s\S]*)?$'
)

# Fallback combinators that make an access "defaulted"
DEFAULT_COMBINATOR = re.compile(r'\s*(?:\|\|(?!=)|\?\?(?!=)|or\b)')


@dataclass(frozen=True)
class RawAccess:
    """One grammar match before contextual refinement."""
    start: int
    end: int
    kind: str
    name: Optional[str] = None
    local: Optional[str] = None  # alias bound by a destructuring entry


def find_accesses(text: str) -> List[RawAccess]:
    """Return every raw access in text, ordered by position."""
    accesses: List[RawAccess] = []
    accesses.extend(_find_destructures(text))
    accesses.extend(_find_members(text))
    accesses.extend(_find_subscripts(text, JS_SUBSCRIPT))
    accesses.extend(_find_subscripts(text, PY_SUBSCRIPT))
    accesses.extend(_find_calls(text))
    accesses.sort(key=lambda access: (access.start, access.end))
    return accesses


def is_defaulted(text: str, end: int) -> bool:
    """True when a fallback combinator directly follows the access ending at `end`."""
    return DEFAULT_COMBINATOR.match(text, end) is not None


def _find_members(text: str) -> Iterator[RawAccess]:
    for match in MEMBER_ACCESS.finditer(text):
        yield RawAccess(match.start(), match.end(), DIRECT, match.group('name'))


def _find_subscripts(text: str, pattern: re.Pattern) -> Iterator[RawAccess]:
    for match in pattern.finditer(text):
        literal = LITERAL_KEY.match(text, match.end())
        if literal and text.startswith(']', literal.end()):
            yield RawAccess(match.start(), literal.end() + 1, BRACKET_LITERAL, literal.group('name'))
        else:
            yield RawAccess(match.start(), match.end(), DYNAMIC)


def _find_calls(text: str) -> Iterator[RawAccess]:
    for match in PY_CALL.finditer(text):
        literal = LITERAL_KEY.match(text, match.end())
        if not literal or literal.end() >= len(text):
            yield RawAccess(match.start(), match.end(), DYNAMIC)
            continue

        follower = text[literal.end()]
        if follower == ')':
            yield RawAccess(match.start(), literal.end() + 1, BRACKET_LITERAL, literal.group('name'))
        elif follower == ',':
            yield RawAccess(match.start(), literal.end() + 1, DEFAULTED, literal.group('name'))
        else:
            # e.g. os.getenv("A" + suffix)
            yield RawAccess(match.start(), match.end(), DYNAMIC)


def _find_destructures(text: str) -> Iterator[RawAccess]:
    for match in DESTRUCTURE_BINDING.finditer(text):
        body_start = match.start('body')
        for offset, entry in split_top_level(match.group('body')):
            entry_start = body_start + offset + (len(entry) - len(entry.lstrip()))
            stripped = entry.strip()
            if not stripped:
                continue

            parsed = DESTRUCTURE_ENTRY.match(stripped)
            if stripped.startswith('...') or parsed is None:
                # rest element or computed key: the bound names are unknowable
                yield RawAccess(entry_start, entry_start + len(stripped), DYNAMIC)
                continue

            name = parsed.group('name')
            yield RawAccess(
                entry_start,
                entry_start + len(stripped),
                DESTRUCTURE,
                name,
                local=parsed.group('local') or name,
            )


def split_top_level(body: str) -> List[Tuple[int, str]]:
    """Split a destructuring body on commas outside brackets and string literals.

    Args:
        body: Text between the pattern's braces

    Returns:
        List of (offset in body, entry text) pairs
    """
    entries = []
    depth = 0
    quote = None
    start = 0
    index = 0
    while index < len(body):
        char = body[index]
        if quote:
            if char == '\\':
                index += 1
            elif char == quote:
                quote = None
        elif char in '\'"`':
            quote = char
        elif char in '([':
            depth += 1
        elif char in ')]':
            depth = max(depth - 1, 0)
        elif char == ',' and depth == 0:
            entries.append((start, body[start:index]))
            start = index + 1
        index += 1
    entries.append((start, body[start:]))
    return entries
