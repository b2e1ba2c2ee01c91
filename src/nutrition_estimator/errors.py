"""Error types raised by the estimation pipeline."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from nutrition_estimator.domain.foods import MealAnalysis


class NutritionEstimatorError(Exception):
    """Base error for the package."""

    code = "UNEXPECTED_ERROR"


class MissingInputError(NutritionEstimatorError):
    """Caller-supplied data is absent or malformed."""

    code = "MISSING_INPUT"


class ImageTooLargeError(MissingInputError):
    """An uploaded image exceeds the accepted size."""

    code = "IMAGE_TOO_LARGE"


class RateLimitedError(NutritionEstimatorError):
    """The client exceeded its request allowance."""

    code = "RATE_LIMITED"

    def __init__(self, retry_after_seconds: int) -> None:
        super().__init__("Too many requests. Please try again in a few minutes.")
        self.retry_after_seconds = retry_after_seconds


class UpstreamUnavailableError(NutritionEstimatorError):
    """A collaborator call failed or returned unusable content."""

    code = "UPSTREAM_UNAVAILABLE"


class DetectionTimeoutError(UpstreamUnavailableError):
    """Image identification did not finish in time."""

    code = "TIMEOUT"


class AllFoodsFailedRealismError(NutritionEstimatorError):
    """Every resolved food failed realism validation, even after correction."""

    code = "REALISM_VALIDATION_FAILED"

    def __init__(self, analysis: "MealAnalysis") -> None:
        super().__init__(
            f"All {len(analysis.foods)} foods failed realism validation after retry"
        )
        self.analysis = analysis
