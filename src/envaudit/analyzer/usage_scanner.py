"""Usage scanning across source files.

Each file is scanned independently on a thread pool; every worker owns its
own parser and result list. Results are merged afterwards in one
deterministic step, sorted by (file, line, column), so the output never
depends on worker scheduling.
"""
import bisect
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from .access_patterns import RawAccess, find_accesses, is_defaulted
from .context_resolver import ContextResolver
from .errors import ScanError
from .models import (
    BRACKET_LITERAL,
    DEFAULTED,
    DESTRUCTURE,
    DIRECT,
    DYNAMIC,
    PRIVATELY_SCOPED,
    TEMPLATE_INTERPOLATION,
    AnalysisSettings,
    Usage,
)
from .parser import SourceLayout

logger = logging.getLogger(__name__)

SourceFile = Tuple[str, Union[str, bytes]]


class LineIndex:
    """Offset -> (line, column), both 1-based."""

    def __init__(self, text: str):
        self.line_starts = [0]
        self.line_starts.extend(match.end() for match in re.finditer('\n', text))

    def position(self, offset: int) -> Tuple[int, int]:
        line = bisect.bisect_right(self.line_starts, offset)
        return line, offset - self.line_starts[line - 1] + 1


class UsageScanner:
    """Scan (path, text) pairs for configuration accesses."""

    def __init__(self, settings: Optional[AnalysisSettings] = None):
        self.settings = settings or AnalysisSettings()
        self.errors: List[ScanError] = []
        self.contexts = {}

    def scan(self, files: Iterable[SourceFile]) -> List[Usage]:
        """Scan every file and return all usages, dynamic ones included.

        Files that cannot be decoded or scanned are recorded in `self.errors`
        and excluded; the rest of the run proceeds.
        """
        self.errors = []
        decoded: List[Tuple[str, str]] = []
        for path, content in files:
            try:
                decoded.append((path, _decode(path, content)))
            except ScanError as e:
                logger.info("Skipping %s", e)
                self.errors.append(e)

        resolver = ContextResolver(self.settings.client_markers, self.settings.client_globs)
        self.contexts = resolver.resolve(decoded)

        jobs = [(path, text, self.contexts[path]) for path, text in decoded]
        with ThreadPoolExecutor(max_workers=self.settings.max_workers) as executor:
            outcomes = list(executor.map(self._scan_job, jobs))

        usages: List[Usage] = []
        for file_usages, error in outcomes:
            if error is not None:
                self.errors.append(error)
            else:
                usages.extend(file_usages)

        usages.sort(key=lambda usage: usage.sort_key)
        self.errors.sort(key=lambda error: error.file)
        logger.debug("Scanned %d files: %d usages, %d errors",
                     len(decoded), len(usages), len(self.errors))
        return usages

    def _scan_job(self, job: Tuple[str, str, str]) -> Tuple[List[Usage], Optional[ScanError]]:
        path, text, context = job
        try:
            return scan_text(path, text, context), None
        except Exception as e:
            logger.info("Failed to scan %s: %s", path, e)
            return [], ScanError(path, f"scan failed: {e}")


def scan_text(path: str, text: str, context: str = PRIVATELY_SCOPED) -> List[Usage]:
    """Scan one decoded file. Pure function of its arguments."""
    layout = SourceLayout.from_source(path, text)
    lines = LineIndex(text)
    accesses = [access for access in find_accesses(text) if not layout.in_comment(access.start)]

    usages = []
    for access in accesses:
        kind = access.kind
        if kind in (DIRECT, BRACKET_LITERAL):
            if is_defaulted(text, access.end):
                kind = DEFAULTED
            elif layout.in_interpolation(access.start):
                kind = TEMPLATE_INTERPOLATION

        line, column = lines.position(access.start)
        usages.append(Usage(
            name=None if kind == DYNAMIC else access.name,
            file=path,
            line=line,
            column=column,
            kind=kind,
            context=context,
        ))

    usages.extend(_resolve_aliases(path, text, context, layout, lines, accesses))
    return usages


def _resolve_aliases(path: str, text: str, context: str, layout: SourceLayout,
                     lines: LineIndex, accesses: Sequence[RawAccess]) -> List[Usage]:
    """Resolve later bare references to destructured locals in the same scope."""
    spans = [(access.start, access.end) for access in accesses]
    usages = []

    for binding in accesses:
        if binding.kind != DESTRUCTURE:
            continue

        scope = layout.scope_of(binding.start)
        reference = re.compile(r'(?<![\w$.\'"`])' + re.escape(binding.local) + r'(?![\w$\'"`])')
        for match in reference.finditer(text, binding.end):
            offset = match.start()
            if layout.in_comment(offset) or _inside(spans, offset):
                continue
            # string contents and object keys are not references
            if not layout.is_identifier(offset):
                continue
            if layout.scope_of(offset) != scope:
                continue

            line, column = lines.position(offset)
            usages.append(Usage(
                name=binding.name,
                file=path,
                line=line,
                column=column,
                kind=DIRECT,
                context=context,
                alias_of=binding.local,
            ))

    return usages


def _inside(spans: Sequence[Tuple[int, int]], offset: int) -> bool:
    return any(start <= offset < end for start, end in spans)


def _decode(path: str, content: Union[str, bytes]) -> str:
    if isinstance(content, bytes):
        try:
            content = content.decode('utf-8')
        except UnicodeDecodeError as e:
            raise ScanError(path, f"not valid UTF-8 text ({e.reason})")
    if '\x00' in content:
        raise ScanError(path, "binary content")
    return content
