"""Layered declaration parsing.

Reads ordered `.env`-style layers into a precedence-aware symbol table.

Supported line forms:
- KEY=VALUE            bare value, ` #` starts an inline comment
- KEY='VALUE' / "VALUE" the matching outer quotes are stripped, nothing else
- KEY=                 declared without value
- export KEY=VALUE     the `export` keyword is ignored
- # comment / blank    ignored

A malformed line yields a ParseError and parsing continues with the next
line. Layers are always processed one after another in ordinal order.
"""
import logging
import re
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import ParseError
from .models import Declaration, DeclarationLayer

logger = logging.getLogger(__name__)

KEY_PATTERN = re.compile(r'^[A-Za-z_][A-Za-z0-9_.]*$')
INLINE_COMMENT_PATTERN = re.compile(r'\s#')
QUOTES = ('"', "'")


class DeclarationStore:
    """Parse declaration layers into name -> [Declaration, ...] ordered by layer."""

    def __init__(self):
        self.errors: List[ParseError] = []

    def load(self, layers: Iterable[DeclarationLayer]) -> Dict[str, List[Declaration]]:
        """Parse every layer, highest priority first.

        Args:
            layers: Declaration layers; ties on ordinal keep input order

        Returns:
            Dict mapping each declared name to its declarations, ordered by layer
        """
        self.errors = []
        table: Dict[str, List[Declaration]] = {}

        # sorted() is stable, so equal ordinals keep the caller's order
        for layer in sorted(layers, key=lambda item: item.ordinal):
            for name, declaration in self._parse_layer(layer).items():
                table.setdefault(name, []).append(declaration)

        logger.debug("Loaded %d declared names (%d parse errors)", len(table), len(self.errors))
        return table

    def _parse_layer(self, layer: DeclarationLayer) -> Dict[str, Declaration]:
        """Parse one layer. A later line for the same name replaces an earlier one."""
        declarations: Dict[str, Declaration] = {}

        for line_number, raw_line in enumerate(layer.content.splitlines(), start=1):
            try:
                declaration = self._parse_line(raw_line, layer, line_number)
            except ParseError as e:
                logger.info("Skipping malformed declaration %s", e)
                self.errors.append(e)
                continue

            if declaration is None:
                continue

            if declaration.name in declarations:
                logger.debug(
                    "%s:%d overrides %s from line %d",
                    layer.path, line_number, declaration.name,
                    declarations[declaration.name].line_number,
                )
            declarations[declaration.name] = declaration

        return declarations

    def _parse_line(self, raw_line: str, layer: DeclarationLayer,
                    line_number: int) -> Optional[Declaration]:
        stripped = raw_line.strip()
        if not stripped or stripped.startswith('#'):
            return None

        if stripped.startswith('export '):
            stripped = stripped[len('export '):].lstrip()

        if '=' not in stripped:
            raise ParseError(layer.path, line_number, "expected KEY=VALUE")

        key, _, rest = stripped.partition('=')
        key = key.strip()
        if not KEY_PATTERN.match(key):
            raise ParseError(layer.path, line_number, f"invalid key {key!r}")

        value, comment = self._parse_value(rest, layer.path, line_number)

        return Declaration(
            name=key,
            layer=layer.ordinal,
            has_value=value != '',
            source_file=layer.path,
            line_number=line_number,
            inline_comment=comment,
            value=value if value != '' else None,
        )

    def _parse_value(self, rest: str, path: str, line_number: int) -> Tuple[str, Optional[str]]:
        """Split the text after '=' into (value, inline_comment)."""
        text = rest.lstrip()

        if text[:1] in QUOTES:
            quote = text[0]
            closing = text.find(quote, 1)
            if closing == -1:
                raise ParseError(path, line_number, f"unterminated {quote} quote")

            value = text[1:closing]
            tail = text[closing + 1:].strip()
            if tail and not tail.startswith('#'):
                raise ParseError(path, line_number, f"unexpected text after closing quote: {tail!r}")
            comment = tail[1:].strip() or None if tail else None
            return value, comment

        # Bare value: '#' only starts a comment when preceded by whitespace
        match = INLINE_COMMENT_PATTERN.search(rest)
        if match:
            value = rest[:match.start()].strip()
            comment = rest[match.end():].strip() or None
            return value, comment

        return rest.strip(), None
