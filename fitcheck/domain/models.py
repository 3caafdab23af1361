from enum import Enum
from typing import List, Optional, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from dataclasses import dataclass
import base64
import binascii
import re

# --- Enums ---

class IssueKind(str, Enum):
    LOW_RESOLUTION = "low-resolution"
    TOO_DARK = "too-dark"
    BLURRY = "blurry"

# --- Pydantic Models ---

DATA_URL_PATTERN = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(;[^;,]*)*?);base64,(?P<payload>.*)$", re.DOTALL)

class EncodedImage(BaseModel):
    """Encoded image bytes plus their declared MIME type. Immutable."""
    model_config = ConfigDict(frozen=True)

    data: bytes
    mime_type: str = "application/octet-stream"

    @field_validator('mime_type', mode='before')
    @classmethod
    def normalize_mime(cls, v: Optional[str]) -> str:
        if not v:
            return "application/octet-stream"
        return v.strip().lower()

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_data_url(cls, data_url: str) -> "EncodedImage":
        """Parses `data:<mime>;base64,<payload>` into an EncodedImage."""
        match = DATA_URL_PATTERN.match(data_url.strip())
        if not match:
            raise ValueError("Not a base64 data URL")

        try:
            payload = base64.b64decode(match.group("payload"), validate=True)
        except binascii.Error as e:
            raise ValueError(f"Invalid base64 payload: {e}") from e

        return cls(data=payload, mime_type=match.group("mime"))

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


class QualityVerdict(BaseModel):
    """Pass/fail outcome of a quality check. Issues keep check order: resolution, brightness, sharpness."""
    model_config = ConfigDict(frozen=True)

    is_acceptable: bool
    issues: List[IssueKind] = Field(default_factory=list)

    @model_validator(mode='before')
    @classmethod
    def derive_acceptance(cls, data: Any) -> Any:
        if isinstance(data, dict) and 'is_acceptable' not in data:
            data = {**data, 'is_acceptable': not data.get('issues')}
        return data

    @model_validator(mode='after')
    def check_consistency(self) -> "QualityVerdict":
        if self.is_acceptable != (len(self.issues) == 0):
            raise ValueError("is_acceptable must be True exactly when there are no issues")
        if len(set(self.issues)) != len(self.issues):
            raise ValueError(f"Duplicate issues in verdict: {[i.value for i in self.issues]}")
        return self

    @classmethod
    def accept(cls) -> "QualityVerdict":
        return cls(is_acceptable=True, issues=[])

    @classmethod
    def from_issues(cls, issues: List[IssueKind]) -> "QualityVerdict":
        return cls(is_acceptable=not issues, issues=list(issues))

# --- Dataclasses ---

@dataclass(frozen=True)
class QualityMetrics:
    native_width: int
    native_height: int
    analysis_width: int
    analysis_height: int
    brightness: Optional[float] = None          # None when no analysis raster
    laplacian_variance: Optional[float] = None

    @property
    def has_analysis(self) -> bool:
        return self.brightness is not None and self.laplacian_variance is not None
