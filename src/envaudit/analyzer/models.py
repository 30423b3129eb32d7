"""Records shared by every stage of the cross-reference pipeline."""
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Tuple

# Usage.kind values
DIRECT = 'direct'
BRACKET_LITERAL = 'bracketLiteral'
DESTRUCTURE = 'destructure'
TEMPLATE_INTERPOLATION = 'templateInterpolation'
DEFAULTED = 'defaulted'
DYNAMIC = 'dynamic'

# Usage.context values
PUBLICLY_EXPOSED = 'publicly-exposed'
PRIVATELY_SCOPED = 'privately-scoped'
UNKNOWN_CONTEXT = 'unknown'

# CrossReferenceRecord.flags values
MISSING = 'MISSING'
UNUSED = 'UNUSED'

# Classification.visibility values
PUBLIC = 'Public'
PRIVATE = 'Private'

UNCLASSIFIED = 'Unclassified'

# Anomaly.kind values
SCOPE_MISMATCH = 'ScopeMismatch'
TYPO_CANDIDATE = 'TypoCandidate'
DECLARED_WITHOUT_VALUE = 'DeclaredWithoutValue'


@dataclass(frozen=True)
class AnalysisSettings:
    """Engine knobs. Built by envaudit.config for the CLI; the engine never reads the environment."""
    public_prefixes: Tuple[str, ...] = ('NEXT_PUBLIC_',)
    client_markers: Tuple[str, ...] = ('use client',)
    client_globs: Tuple[str, ...] = ('*.client.js', '*.client.jsx', '*.client.ts', '*.client.tsx')
    max_workers: int = 8
    max_typo_distance: int = 2


@dataclass(frozen=True)
class DeclarationLayer:
    """One declaration file. Lower ordinal wins."""
    path: str
    content: str
    ordinal: int


@dataclass(frozen=True)
class Declaration:
    """A KEY=VALUE binding from one layer."""
    name: str
    layer: int
    has_value: bool
    source_file: str
    line_number: int
    inline_comment: Optional[str] = None
    value: Optional[str] = None

    def as_dict(self) -> dict:
        # The value itself is never exported
        return {
            'name': self.name,
            'layer': self.layer,
            'has_value': self.has_value,
            'source_file': self.source_file,
            'line_number': self.line_number,
            'inline_comment': self.inline_comment,
        }


@dataclass(frozen=True)
class Usage:
    """A single textual occurrence of a configuration read."""
    name: Optional[str]  # None when kind == 'dynamic'
    file: str
    line: int
    column: int
    kind: str
    context: str = PRIVATELY_SCOPED
    alias_of: Optional[str] = None

    @property
    def sort_key(self) -> Tuple[str, int, int]:
        return (self.file, self.line, self.column)

    def as_dict(self) -> dict:
        """JSON-ready form; alias_of is None unless the usage reads a destructured local."""
        return {
            'name': self.name,
            'file': self.file,
            'line': self.line,
            'column': self.column,
            'kind': self.kind,
            'context': self.context,
            'alias_of': self.alias_of,
        }


@dataclass(frozen=True)
class CrossReferenceRecord:
    """Joined view of one symbol's declarations, usages and flags."""
    name: str
    declarations: Tuple[Declaration, ...] = ()
    usages: Tuple[Usage, ...] = ()
    flags: FrozenSet[str] = frozenset()

    @property
    def effective_declaration(self) -> Optional[Declaration]:
        """Highest-priority declaration that carries a value."""
        for declaration in self.declarations:
            if declaration.has_value:
                return declaration
        return None

    @property
    def effective_value_present(self) -> bool:
        return self.effective_declaration is not None

    @property
    def effective_value(self) -> Optional[str]:
        declaration = self.effective_declaration
        return declaration.value if declaration else None

    @property
    def is_declared(self) -> bool:
        return bool(self.declarations)

    @property
    def usage_count(self) -> int:
        return len(self.usages)

    @property
    def file_count(self) -> int:
        return len({usage.file for usage in self.usages})

    def as_dict(self) -> dict:
        """JSON-ready form with declarations, usages and sorted flags."""
        return {
            'name': self.name,
            'declarations': [d.as_dict() for d in self.declarations],
            'effective_value_present': self.effective_value_present,
            'usage_count': self.usage_count,
            'file_count': self.file_count,
            'usages': [u.as_dict() for u in self.usages],
            'flags': sorted(self.flags),
        }


@dataclass(frozen=True)
class Classification:
    visibility: str  # 'Public' or 'Private'
    category: str
    value_shape: str  # 'url', 'secret', 'boolean', 'integer', 'string'
    placeholder: str


@dataclass(frozen=True)
class Anomaly:
    kind: str
    name: str
    file: Optional[str] = None
    line: Optional[int] = None
    suggested: Optional[str] = None
    distance: Optional[int] = None

    @property
    def sort_key(self) -> Tuple[str, str, int, str]:
        return (self.name, self.file or '', self.line or 0, self.kind)

    def as_dict(self) -> dict:
        """JSON-ready form; typo candidates also carry suggested and distance."""
        data = {'kind': self.kind, 'name': self.name, 'file': self.file, 'line': self.line}
        if self.kind == TYPO_CANDIDATE:
            data['suggested'] = self.suggested
            data['distance'] = self.distance
        return data


@dataclass(frozen=True)
class TemplateEntry:
    name: str
    category: str
    value_shape: str
    placeholder: str


@dataclass
class AnalysisResult:
    """Everything one run produces, ready for a renderer."""
    records: List[CrossReferenceRecord] = field(default_factory=list)
    anomalies: List[Anomaly] = field(default_factory=list)
    classifications: Dict[str, Classification] = field(default_factory=dict)
    dynamic_usage_count: int = 0
    dynamic_usages: List[Usage] = field(default_factory=list)
    manual_review: List[Usage] = field(default_factory=list)
    parse_errors: list = field(default_factory=list)
    scan_errors: list = field(default_factory=list)

    @property
    def missing(self) -> List[str]:
        return [r.name for r in self.records if MISSING in r.flags]

    @property
    def unused(self) -> List[str]:
        return [r.name for r in self.records if UNUSED in r.flags]

    def as_dict(self) -> dict:
        return {
            'records': [
                dict(r.as_dict(), **self._classification_dict(r.name))
                for r in self.records
            ],
            'anomalies': [a.as_dict() for a in self.anomalies],
            'dynamic_usage_count': self.dynamic_usage_count,
            'dynamic_usages': [u.as_dict() for u in self.dynamic_usages],
            'manual_review': [u.as_dict() for u in self.manual_review],
            'parse_errors': [e.as_dict() for e in self.parse_errors],
            'scan_errors': [e.as_dict() for e in self.scan_errors],
        }

    def _classification_dict(self, name: str) -> dict:
        classification = self.classifications.get(name)
        if classification is None:
            return {}
        return {
            'visibility': classification.visibility,
            'category': classification.category,
            'value_shape': classification.value_shape,
        }
