"""Per-file enclosing context: publicly-exposed, privately-scoped or unknown.

A file is publicly-exposed when it opens with a client marker directive
(e.g. "use client") or its path matches a client entry convention. A file
without a marker that is reachable through relative imports from a
publicly-exposed file may end up in the client bundle, so its context
cannot be decided lexically and is reported as unknown.
"""
import fnmatch
import logging
import posixpath
import re
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

import networkx as nx

from .models import PRIVATELY_SCOPED, PUBLICLY_EXPOSED, UNKNOWN_CONTEXT

logger = logging.getLogger(__name__)

# Whitespace and comments allowed before/between prologue directives
PROLOGUE_FILLER = re.compile(r'(?:\s+|//[^\n]*|#[^\n]*|/\*.*?\*/)*', re.DOTALL)
DIRECTIVE = re.compile(r'(?P<quote>[\'"])(?P<body>[^\'"\n]*)(?P=quote)\s*;?')

RELATIVE_IMPORT_PATTERNS = [
    # import x from './x' / import './x' / export { y } from '../y'
    re.compile(r'''\b(?:import|export)\s+(?:[^'";]*?\s+from\s+)?['"](?P<spec>\.{1,2}/[^'"]+)['"]'''),
    # require('./x') / import('./x')
    re.compile(r'''\b(?:require|import)\s*\(\s*['"](?P<spec>\.{1,2}/[^'"]+)['"]\s*\)'''),
]
RESOLVE_EXTENSIONS = ('.ts', '.tsx', '.js', '.jsx', '.mjs', '.cjs')


class ContextResolver:
    """Decide the enclosing context of every scanned file, once per file."""

    def __init__(self, client_markers: Sequence[str] = ('use client',),
                 client_globs: Sequence[str] = ()):
        self.client_markers = set(client_markers)
        self.client_globs = list(client_globs)

    def resolve(self, files: Iterable[Tuple[str, str]]) -> Dict[str, str]:
        """Map each path to its context.

        Args:
            files: (path, text) pairs of every file in the scan

        Returns:
            Dict mapping path -> 'publicly-exposed' | 'privately-scoped' | 'unknown'
        """
        files = list(files)
        normalized = {_normalize(path): path for path, _ in files}

        graph = nx.DiGraph()
        graph.add_nodes_from(path for path, _ in files)
        public: Set[str] = set()

        for path, text in files:
            if self.is_marked(path, text):
                public.add(path)
            for target in self._relative_imports(path, text, normalized):
                graph.add_edge(path, target)

        contexts: Dict[str, str] = {}
        for path, _ in files:
            if path in public:
                contexts[path] = PUBLICLY_EXPOSED
            elif nx.ancestors(graph, path) & public:
                contexts[path] = UNKNOWN_CONTEXT
                logger.debug("%s is imported from a client file, context unknown", path)
            else:
                contexts[path] = PRIVATELY_SCOPED
        return contexts

    def is_marked(self, path: str, text: str) -> bool:
        """True if the file carries a client marker or follows a client entry convention."""
        normalized = _normalize(path)
        basename = posixpath.basename(normalized)
        for pattern in self.client_globs:
            if fnmatch.fnmatchcase(basename, pattern) or fnmatch.fnmatchcase(normalized, pattern):
                return True
        return self._has_marker_directive(text)

    def _has_marker_directive(self, text: str) -> bool:
        """Check the directive prologue, which always precedes the first usage."""
        position = 0
        while True:
            position = PROLOGUE_FILLER.match(text, position).end()
            directive = DIRECTIVE.match(text, position)
            if directive is None:
                return False
            if directive.group('body') in self.client_markers:
                return True
            position = directive.end()

    def _relative_imports(self, path: str, text: str, normalized: Dict[str, str]) -> List[str]:
        """Find the project files a source imports through relative specifiers.

        Args:
            path: Importing file, relative to the project root
            text: Its source text
            normalized: Extensionless path -> real path for every known file

        Returns:
            Resolved import targets, excluding the file itself
        """
        targets = []
        for pattern in RELATIVE_IMPORT_PATTERNS:
            for match in pattern.finditer(text):
                target = _resolve_specifier(_normalize(path), match.group('spec'), normalized)
                if target is not None and target != path:
                    targets.append(target)
        return targets


def _normalize(path: str) -> str:
    return posixpath.normpath(path.replace('\\', '/'))


def _resolve_specifier(importer: str, spec: str, normalized: Dict[str, str]) -> Optional[str]:
    """Resolve a relative specifier against the scanned file set only."""
    base = posixpath.normpath(posixpath.join(posixpath.dirname(importer), spec))
    candidates = [base]
    candidates.extend(base + extension for extension in RESOLVE_EXTENSIONS)
    candidates.extend(f"{base}/index{extension}" for extension in RESOLVE_EXTENSIONS)
    for candidate in candidates:
        if candidate in normalized:
            return normalized[candidate]
    return None
