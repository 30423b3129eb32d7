"""Tree-sitter source layout for lexical scanning.

The usage scanner is lexical: it matches a fixed grammar of access patterns
against raw text. Tree-sitter only supplies the layout around those matches:
where comments are (matches there are ignored), where template/f-string
interpolations are, and where function scopes begin and end (bounds for
destructured alias resolution).

Files with an unsupported extension get a purely lexical layout: no comment
masking, one module scope, interpolations found by brace matching.
"""
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Callable, List, Optional, Set, Tuple

from tree_sitter import Language, Parser, Tree
import tree_sitter_python as tspython
import tree_sitter_javascript as tsjavascript
import tree_sitter_typescript as tstypescript

Range = Tuple[int, int]

SCOPE_NODE_TYPES = {
    # JavaScript / TypeScript
    'function_declaration',
    'function_expression',
    'function',
    'generator_function_declaration',
    'generator_function',
    'arrow_function',
    'method_definition',
    # Python
    'function_definition',
    'lambda',
}
COMMENT_NODE_TYPES = {'comment'}
# template_substitution: ${...} in JS/TS, interpolation: {...} in Python f-strings
INTERPOLATION_NODE_TYPES = {'template_substitution', 'interpolation'}
# Nodes that read a variable; property keys and string contents never match
IDENTIFIER_NODE_TYPES = {'identifier', 'shorthand_property_identifier'}


class LanguageParser:
    """Multi-language parser using the tree-sitter v0.22+ API."""

    SUPPORTED_LANGUAGES = {
        '.py': 'python',
        '.js': 'javascript',
        '.jsx': 'javascript',
        '.mjs': 'javascript',
        '.cjs': 'javascript',
        '.ts': 'typescript',
        '.tsx': 'tsx',
    }

    def __init__(self, language: str):
        """Initialize parser for given language (python, javascript, typescript, tsx).

        Raises:
            ValueError: If language is not supported
        """
        self.language = language
        self.parser = self._create_parser()

    def _create_parser(self) -> Parser:
        if self.language == 'python':
            lang = Language(tspython.language())
        elif self.language == 'javascript':
            lang = Language(tsjavascript.language())
        elif self.language == 'typescript':
            lang = Language(tstypescript.language_typescript())
        elif self.language == 'tsx':
            lang = Language(tstypescript.language_tsx())
        else:
            raise ValueError(f"Unsupported language: {self.language}")

        return Parser(lang)

    def parse_source(self, source_code: bytes) -> Tree:
        return self.parser.parse(source_code)

    @classmethod
    def from_file_extension(cls, file_path: str) -> Optional['LanguageParser']:
        """Create parser based on file extension, or None if unsupported."""
        extension = PurePath(file_path).suffix.lower()
        language = cls.SUPPORTED_LANGUAGES.get(extension)
        if language:
            return cls(language)
        return None


@dataclass
class SourceLayout:
    """Comment, interpolation, scope and identifier positions of one file, in character offsets.

    `identifiers` holds the start offset of every variable reference, or None
    for a lexical layout where the tree is unknown.
    """
    scopes: List[Range] = field(default_factory=list)
    comments: List[Range] = field(default_factory=list)
    interpolations: List[Range] = field(default_factory=list)
    identifiers: Optional[Set[int]] = None

    @classmethod
    def from_source(cls, file_path: str, text: str) -> 'SourceLayout':
        parser = LanguageParser.from_file_extension(file_path)
        if parser is None:
            return cls.lexical(text)

        source_code = text.encode('utf-8')
        tree = parser.parse_source(source_code)
        to_char = _offset_converter(source_code, text)

        layout = cls(identifiers=set())
        stack = [tree.root_node]
        while stack:
            node = stack.pop()
            node_type = node.type

            if node_type in COMMENT_NODE_TYPES:
                layout.comments.append((to_char(node.start_byte), to_char(node.end_byte)))
                continue
            if node_type in SCOPE_NODE_TYPES:
                layout.scopes.append((to_char(node.start_byte), to_char(node.end_byte)))
            elif node_type in INTERPOLATION_NODE_TYPES:
                layout.interpolations.append((to_char(node.start_byte), to_char(node.end_byte)))
            elif node_type in IDENTIFIER_NODE_TYPES:
                layout.identifiers.add(to_char(node.start_byte))

            stack.extend(reversed(node.children))

        layout.scopes.sort()
        layout.comments.sort()
        layout.interpolations.sort()
        return layout

    @classmethod
    def lexical(cls, text: str) -> 'SourceLayout':
        """Fallback layout: `${...}` spans found by brace depth, nothing else."""
        layout = cls()
        start = text.find('${')
        while start != -1:
            depth = 0
            end = None
            for index in range(start + 1, len(text)):
                char = text[index]
                if char == '{':
                    depth += 1
                elif char == '}':
                    depth -= 1
                    if depth == 0:
                        end = index + 1
                        break
            if end is None:
                break
            layout.interpolations.append((start, end))
            start = text.find('${', start + 2)
        return layout

    def is_identifier(self, offset: int) -> bool:
        """True if a variable reference starts at offset (always true for lexical layouts)."""
        return self.identifiers is None or offset in self.identifiers

    def in_comment(self, offset: int) -> bool:
        return _contains(self.comments, offset)

    def in_interpolation(self, offset: int) -> bool:
        return _contains(self.interpolations, offset)

    def scope_of(self, offset: int) -> Optional[Range]:
        """Innermost function scope containing offset, or None for module scope."""
        innermost = None
        for start, end in self.scopes:
            if start > offset:
                break
            if offset < end:
                innermost = (start, end)
        return innermost


def _contains(ranges: List[Range], offset: int) -> bool:
    for start, end in ranges:
        if start > offset:
            return False
        if offset < end:
            return True
    return False


def _offset_converter(source_code: bytes, text: str) -> Callable[[int], int]:
    """Map tree-sitter byte offsets onto str offsets.

    Non-ASCII text gets one byte -> char table built in a single pass.
    """
    if len(source_code) == len(text):
        return lambda byte_offset: byte_offset

    table: List[int] = []
    for index, char in enumerate(text):
        table.extend([index] * len(char.encode('utf-8')))
    table.append(len(text))
    return table.__getitem__
