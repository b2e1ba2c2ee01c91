"""Pydantic models for HTTP request bodies."""

from pydantic import BaseModel, ConfigDict, Field

from nutrition_estimator.domain.detection import DetectedFood


class EstimateNutritionRequest(BaseModel):
    """Typed food description."""

    model_config = ConfigDict(populate_by_name=True)

    food_description: str | None = Field(default=None, alias="foodDescription")
    serving: str | None = None


class IdentifyPhotoRequest(BaseModel):
    """Base64 image, optionally as a data URL."""

    image: str | None = None


class AnalyzeFoodsRequest(BaseModel):
    """Foods already identified by the caller."""

    foods: list[DetectedFood] = Field(default_factory=list)


class ReferenceSearchRequest(BaseModel):
    """Reference database query."""

    query: str | None = None
    serving: str | None = None
