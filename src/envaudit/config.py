"""Configuration management for envaudit.

Loads environment variables and provides centralized config access for the
CLI. The analysis engine itself takes explicit AnalysisSettings and never
reads the environment.
"""
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .analyzer.errors import ConfigError
from .analyzer.models import AnalysisSettings

__version__ = "1.0.0"


def _split(value: str) -> List[str]:
    return [item.strip() for item in value.split(',') if item.strip()]


class Config:
    """Configuration loader with environment variable support."""

    def __init__(self, env_path: Optional[Path] = None):
        """Initialize config by loading an optional envaudit .env file.

        Args:
            env_path: Path of a dotenv file holding ENVAUDIT_* settings.
                      Defaults to `.envaudit` in the working directory, so the
                      project's own .env files are never loaded into the process.
        """
        env_path = Path(env_path) if env_path is not None else Path.cwd() / ".envaudit"
        if env_path.is_file():
            load_dotenv(env_path)

        self._validate()

    def _validate(self):
        """Fail early on malformed numeric settings.

        Raises:
            ConfigError: If ENVAUDIT_MAX_WORKERS or ENVAUDIT_TYPO_DISTANCE is invalid
        """
        for variable, default in (("ENVAUDIT_MAX_WORKERS", "8"), ("ENVAUDIT_TYPO_DISTANCE", "2")):
            self._positive_int(variable, default)

    @property
    def public_prefixes(self) -> List[str]:
        """Name prefixes marking a symbol as safe to expose to clients."""
        return _split(os.getenv("ENVAUDIT_PUBLIC_PREFIXES", "NEXT_PUBLIC_"))

    @property
    def client_markers(self) -> List[str]:
        """Directive strings marking a file as publicly exposed."""
        return _split(os.getenv("ENVAUDIT_CLIENT_MARKERS", "use client"))

    @property
    def client_globs(self) -> List[str]:
        """File-name conventions marking a file as publicly exposed."""
        return _split(os.getenv(
            "ENVAUDIT_CLIENT_GLOBS",
            "*.client.js,*.client.jsx,*.client.ts,*.client.tsx",
        ))

    @property
    def layer_files(self) -> List[str]:
        """Declaration files, highest priority first."""
        return _split(os.getenv(
            "ENVAUDIT_LAYER_FILES",
            ".env.local,.env.development,.env,.env.example",
        ))

    @property
    def max_workers(self) -> int:
        """Thread pool size for scanning (ENVAUDIT_MAX_WORKERS, default 8)."""
        return self._positive_int("ENVAUDIT_MAX_WORKERS", "8")

    @property
    def typo_distance(self) -> int:
        """Largest edit distance reported as a typo (ENVAUDIT_TYPO_DISTANCE, default 2)."""
        return self._positive_int("ENVAUDIT_TYPO_DISTANCE", "2")

    @property
    def rules_path(self) -> Optional[Path]:
        """Category rules file or directory; None means the bundled rules."""
        value = os.getenv("ENVAUDIT_RULES_PATH")
        return Path(value) if value else None

    def analysis_settings(self) -> AnalysisSettings:
        return AnalysisSettings(
            public_prefixes=tuple(self.public_prefixes),
            client_markers=tuple(self.client_markers),
            client_globs=tuple(self.client_globs),
            max_workers=self.max_workers,
            max_typo_distance=self.typo_distance,
        )

    def _positive_int(self, variable: str, default: str) -> int:
        raw = os.getenv(variable, default)
        try:
            value = int(raw)
        except ValueError:
            raise ConfigError(variable, raw, "expected an integer")
        if value < 1:
            raise ConfigError(variable, raw, "must be at least 1")
        return value

