"""Error taxonomy for the cross-reference engine.

ParseError and ScanError are recoverable: they are raised inside the
per-line and per-file workers, caught at that boundary and collected on the
result. EmptyInputError is the only fatal condition of a run.
"""
from typing import Optional


class EnvAuditError(Exception):
    """Base class for all envaudit errors."""


class ParseError(EnvAuditError):
    """A malformed line in a declaration layer."""

    def __init__(self, file: str, line: int, reason: str):
        self.file = file
        self.line = line
        self.reason = reason
        super().__init__(f"{file}:{line}: {reason}")

    def as_dict(self) -> dict:
        return {'file': self.file, 'line': self.line, 'reason': self.reason}


class ScanError(EnvAuditError):
    """A source file that could not be read or scanned."""

    def __init__(self, file: str, reason: str):
        self.file = file
        self.reason = reason
        super().__init__(f"{file}: {reason}")

    def as_dict(self) -> dict:
        return {'file': self.file, 'reason': self.reason}


class EmptyInputError(EnvAuditError):
    """Raised when a run has neither declaration layers nor source files."""

    def __init__(self):
        super().__init__(
            "Nothing to analyze: no declaration layers and no source files were supplied."
        )


class RuleLoadError(EnvAuditError):
    """A category rule file could not be loaded."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot load rules from {path}: {reason}")


class ConfigError(EnvAuditError):
    """An environment configuration value is invalid."""

    def __init__(self, variable: str, value: Optional[str], reason: str):
        self.variable = variable
        self.value = value
        super().__init__(f"{variable}={value!r}: {reason}")
