"""
typefinder Configuration Module

Centralized configuration for the type search engine: default file
extensions, result limits, traversal exclusions, the structured backend
and the worker pool size.
"""

import os
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

# Searched when a request does not name its own extensions.
DEFAULT_FILE_EXTENSIONS: Tuple[str, ...] = (
    ".cs", ".ts", ".js", ".py", ".java", ".go", ".rs", ".php",
)

DEFAULT_MAX_RESULTS: int = 50

STRUCTURED_BACKENDS: Tuple[str, ...] = ("python", "none")

LOG_LEVELS: Tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def normalize_extensions(extensions: Optional[Iterable[str]]) -> Tuple[str, ...]:
    """
    Turn user-supplied extensions into an ordered, de-duplicated tuple.

    Blank entries are dropped and a leading dot is added where missing
    (``cs`` becomes ``.cs``).  An empty result falls back to
    :data:`DEFAULT_FILE_EXTENSIONS`.
    """
    if not extensions:
        return DEFAULT_FILE_EXTENSIONS
    seen: set = set()
    out = []
    for raw in extensions:
        ext = raw.strip()
        if not ext:
            continue
        if not ext.startswith("."):
            ext = "." + ext
        key = ext.lower()
        if key in seen:
            continue
        seen.add(key)
        out.append(ext)
    return tuple(out) or DEFAULT_FILE_EXTENSIONS


def parse_extension_list(csv: Optional[str]) -> Tuple[str, ...]:
    """Parse a comma-separated ``--file-types`` value (``.cs,.ts``)."""
    if csv is None:
        return DEFAULT_FILE_EXTENSIONS
    return normalize_extensions(csv.split(","))


def _env_int(name: str, default: int) -> int:
    from typefinder.exceptions import ConfigError

    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


@dataclass
class TypeFinderConfig:
    """
    Instance-based configuration for typefinder.

    Each ``TypeFinderConfig`` is self-contained and passed through the call
    stack, so tests and embedding applications never touch global state.

    Create from environment variables::

        config = TypeFinderConfig.from_env()

    Or with explicit values::

        config = TypeFinderConfig(max_workers=1, structured_backend="none")
    """

    # ── Search defaults ───────────────────────────────────────────
    file_extensions: Tuple[str, ...] = DEFAULT_FILE_EXTENSIONS
    max_results: int = DEFAULT_MAX_RESULTS

    # ── File Processing ───────────────────────────────────────────
    # Empty by default: the whole subtree is searched.
    exclude_dirs: frozenset = frozenset()
    max_file_size_mb: int = 0  # 0 = no limit

    # ── Structured analysis ───────────────────────────────────────
    structured_backend: str = "python"

    # ── Concurrency ───────────────────────────────────────────────
    max_workers: int = 4
    show_progress: bool = False

    # ── Logging ───────────────────────────────────────────────────
    log_level: str = "WARNING"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # ── Factory ───────────────────────────────────────────────────

    @classmethod
    def from_env(cls) -> "TypeFinderConfig":
        """Build a config snapshot from current environment variables.

        Raises :class:`~typefinder.exceptions.ConfigError` when a numeric
        variable does not parse.
        """
        file_types = os.getenv("TYPEFINDER_FILE_TYPES")
        exclude_raw = os.getenv("TYPEFINDER_EXCLUDE_DIRS", "")
        return cls(
            file_extensions=parse_extension_list(file_types),
            max_results=_env_int("TYPEFINDER_MAX_RESULTS", DEFAULT_MAX_RESULTS),
            exclude_dirs=frozenset(d.strip() for d in exclude_raw.split(",") if d.strip()),
            max_file_size_mb=_env_int("TYPEFINDER_MAX_FILE_SIZE_MB", 0),
            structured_backend=os.getenv("TYPEFINDER_STRUCTURED", "python").strip().lower(),
            max_workers=_env_int("TYPEFINDER_WORKERS", 4),
            log_level=os.getenv("TYPEFINDER_LOG_LEVEL", "WARNING").strip().upper(),
        )

    # ── Validation & Accessors ────────────────────────────────────

    def validate(self) -> bool:
        """
        Check that every setting is usable.

        Raises :class:`~typefinder.exceptions.ConfigError` on failure.
        """
        from typefinder.exceptions import ConfigError

        if self.max_results <= 0:
            raise ConfigError(f"max_results must be positive, got {self.max_results}")
        if self.max_workers <= 0:
            raise ConfigError(f"max_workers must be positive, got {self.max_workers}")
        if self.max_file_size_mb < 0:
            raise ConfigError(
                f"max_file_size_mb must be 0 (no limit) or positive, got {self.max_file_size_mb}"
            )
        if self.structured_backend not in STRUCTURED_BACKENDS:
            raise ConfigError(
                f"Unknown structured backend '{self.structured_backend}'. "
                f"Supported: {', '.join(STRUCTURED_BACKENDS)}.\n"
                "  Set via: export TYPEFINDER_STRUCTURED=python"
            )
        if self.log_level not in LOG_LEVELS:
            raise ConfigError(
                f"Unknown log level '{self.log_level}'. Supported: {', '.join(LOG_LEVELS)}."
            )
        return True

    @property
    def max_file_size_bytes(self) -> int:
        """Size cap in bytes, or 0 when unlimited."""
        return self.max_file_size_mb * 1024 * 1024
