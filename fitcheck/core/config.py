"""
Runtime settings for the quality gate.
Defaults live here; `FITCHECK_*` environment variables override them.
"""
import os
from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Callable, Any

MIN_WIDTH = 300
MIN_HEIGHT = 300
ANALYSIS_MAX_EDGE = 500
DARKNESS_THRESHOLD = 70.0  # Average pixel brightness (0-255)
BLUR_THRESHOLD = 100.0     # Variance of Laplacian. Higher is sharper.

MAX_UPLOAD_BYTES = 5 * 1024 * 1024
ALLOWED_MIME_TYPES = frozenset({"image/png", "image/jpeg", "image/webp"})


def _env(name: str, cast: Callable[[str], Any], default: Any) -> Any:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw.strip())
    except ValueError:
        raise ValueError(f"Invalid value for {name}: {raw!r}")


@dataclass(frozen=True)
class QualityThresholds:
    min_width: int = MIN_WIDTH
    min_height: int = MIN_HEIGHT
    analysis_max_edge: int = ANALYSIS_MAX_EDGE
    darkness_threshold: float = DARKNESS_THRESHOLD
    blur_threshold: float = BLUR_THRESHOLD

    def __post_init__(self):
        if self.analysis_max_edge <= 0:
            raise ValueError(f"analysis_max_edge must be positive, got {self.analysis_max_edge}")

    @classmethod
    def from_env(cls) -> "QualityThresholds":
        return cls(
            min_width=_env("FITCHECK_MIN_WIDTH", int, MIN_WIDTH),
            min_height=_env("FITCHECK_MIN_HEIGHT", int, MIN_HEIGHT),
            analysis_max_edge=_env("FITCHECK_ANALYSIS_MAX_EDGE", int, ANALYSIS_MAX_EDGE),
            darkness_threshold=_env("FITCHECK_DARKNESS_THRESHOLD", float, DARKNESS_THRESHOLD),
            blur_threshold=_env("FITCHECK_BLUR_THRESHOLD", float, BLUR_THRESHOLD),
        )


@dataclass(frozen=True)
class UploadSettings:
    max_upload_bytes: int = MAX_UPLOAD_BYTES
    allowed_mime_types: FrozenSet[str] = field(default_factory=lambda: ALLOWED_MIME_TYPES)
    fetch_timeout: float = 30.0
    language: str = "en"

    @property
    def max_upload_mb(self) -> float:
        return self.max_upload_bytes / (1024 * 1024)

    @classmethod
    def from_env(cls, language: Optional[str] = None) -> "UploadSettings":
        # Env > Arg > Default
        max_mb = _env("FITCHECK_MAX_UPLOAD_MB", float, None)
        return cls(
            max_upload_bytes=int(max_mb * 1024 * 1024) if max_mb is not None else MAX_UPLOAD_BYTES,
            fetch_timeout=_env("FITCHECK_FETCH_TIMEOUT", float, 30.0),
            language=os.getenv("FITCHECK_LANGUAGE") or language or "en",
        )
