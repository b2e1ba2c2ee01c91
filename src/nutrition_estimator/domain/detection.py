"""Models for food detection results."""

from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, Field


class DetectedFood(BaseModel):
    """Single food item as returned by a vision or decomposition oracle."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = Field(min_length=1)
    estimated_serving: str | None = Field(default=None, alias="estimatedServing")
    is_complex: bool = Field(default=False, alias="isComplex")


class DetectionPayload(BaseModel):
    """Structured output for food identification."""

    model_config = ConfigDict(extra="ignore")

    foods: list[DetectedFood] = Field(default_factory=list)
    error: str | None = None


@dataclass(frozen=True)
class MultiModelValidation:
    """Agreement metadata attached to a detection."""

    confidence: float
    agreed_models: tuple[str, ...]
    name_similarity: float = 0.0
    primary_name: str | None = None
    secondary_name: str | None = None
    primary_serving: str | None = None
    secondary_serving: str | None = None
    secondary_error: str | None = None


@dataclass(frozen=True)
class FoodDetection:
    """A food mention to resolve, optionally with multi-model metadata."""

    name: str
    serving: str | None = None
    is_complex: bool = False
    validation: MultiModelValidation | None = None

    @classmethod
    def from_detected(
        cls, item: DetectedFood, validation: MultiModelValidation | None = None
    ) -> "FoodDetection":
        """Build a detection from an oracle item."""
        return cls(
            name=item.name.strip(),
            serving=item.estimated_serving,
            is_complex=item.is_complex,
            validation=validation,
        )


@dataclass(frozen=True)
class OracleDetections:
    """Outcome of one oracle's identification call."""

    source: str
    foods: list[DetectedFood] = field(default_factory=list)
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        """Whether the call returned at least one food without error."""
        return self.error is None and bool(self.foods)


@dataclass(frozen=True)
class DetectionResult:
    """Detections ready for resolution plus a summary of the oracles involved."""

    detections: list[FoodDetection]
    multi_model_used: bool
    summary: dict[str, object] = field(default_factory=dict)
    message: str | None = None
