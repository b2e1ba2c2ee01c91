"""camelCase JSON rendering of domain results."""

from nutrition_estimator.domain.detection import MultiModelValidation
from nutrition_estimator.domain.foods import (
    MealAnalysis,
    ResolvedFood,
    ResolvedIngredient,
)
from nutrition_estimator.domain.nutrition import (
    FoodCandidate,
    NutritionProfile,
    wire_name,
)
from nutrition_estimator.domain.validation import (
    MealAggregate,
    OutlierReport,
    ValidationResult,
)


def serialize_nutrition(nutrition: NutritionProfile | None) -> dict[str, object] | None:
    if nutrition is None:
        return None
    return nutrition.as_wire_dict()


def serialize_validation(validation: ValidationResult | None) -> dict[str, object] | None:
    if validation is None:
        return None
    return {"valid": validation.valid, "issues": list(validation.issues)}


def serialize_candidate(candidate: FoodCandidate) -> dict[str, object]:
    return {
        "fdcId": candidate.fdc_id,
        "description": candidate.description,
        "dataType": candidate.data_type,
        "nutrition": serialize_nutrition(candidate.nutrition),
        "rank": candidate.rank,
    }


def serialize_outliers(report: OutlierReport | None) -> dict[str, object] | None:
    if report is None:
        return None
    return {
        "detected": report.detected,
        "flaggedNutrients": [
            {
                "nutrient": wire_name(item.nutrient),
                "value": item.value,
                "typicalMax": item.typical_max,
                "severity": item.severity,
                "ratio": item.ratio,
                "message": item.message,
            }
            for item in report.flagged_nutrients
        ],
        "crossNutrientIssues": [
            {"name": item.name, "message": item.message, "severity": item.severity}
            for item in report.cross_nutrient_issues
        ],
        "autoCorrections": {
            wire_name(field_name): {
                "original": correction.original,
                "correctedTo": correction.corrected,
                "reason": correction.reason,
            }
            for field_name, correction in report.auto_corrections.items()
        },
        "correctedNutrition": serialize_nutrition(report.corrected_nutrition),
        "totalFlagged": report.total_flagged,
        "totalCorrected": report.total_corrected,
    }


def serialize_meal_aggregate(aggregate: MealAggregate | None) -> dict[str, object] | None:
    if aggregate is None:
        return None
    return {
        "hasAggregateOutliers": aggregate.has_aggregate_outliers,
        "mealTotals": serialize_nutrition(aggregate.meal_totals),
        "flaggedTotals": [
            {
                "nutrient": wire_name(item.nutrient),
                "total": item.total,
                "dailyReference": item.daily_reference,
                "percentDRI": item.percent_dri,
                "message": item.message,
            }
            for item in aggregate.flagged_totals
        ],
        "summary": aggregate.summary,
    }


def serialize_multi_model(
    validation: MultiModelValidation | None,
) -> dict[str, object] | None:
    if validation is None:
        return None
    return {
        "confidence": validation.confidence,
        "agreedModels": list(validation.agreed_models),
        "nameSimilarity": validation.name_similarity,
        "primaryName": validation.primary_name,
        "secondaryName": validation.secondary_name,
        "primaryServing": validation.primary_serving,
        "secondaryServing": validation.secondary_serving,
        "secondaryError": validation.secondary_error,
    }


def serialize_ingredient(ingredient: ResolvedIngredient) -> dict[str, object]:
    return {
        "name": ingredient.name,
        "serving": ingredient.serving.text,
        "servingGrams": ingredient.serving.grams,
        "nutrition": serialize_nutrition(ingredient.nutrition),
        "source": ingredient.source,
        "candidates": [serialize_candidate(item) for item in ingredient.candidates],
        "realismValidation": serialize_validation(ingredient.realism_validation),
    }


def serialize_food(food: ResolvedFood) -> dict[str, object]:
    """Render one resolved food in the response contract."""
    return {
        "name": food.name,
        "serving": food.serving.text,
        "servingGrams": food.serving.grams,
        "nutrition": serialize_nutrition(food.nutrition),
        "source": food.source,
        "referenceDescription": food.reference_description,
        "searchTerm": food.search_term,
        "candidates": [serialize_candidate(item) for item in food.candidates],
        "ingredients": (
            [serialize_ingredient(item) for item in food.ingredients]
            if food.ingredients is not None
            else None
        ),
        "ingredientNutrition": serialize_nutrition(food.ingredient_nutrition),
        "ingredientValidation": serialize_validation(food.ingredient_validation),
        "realismValidation": serialize_validation(food.realism_validation),
        "correctionAttempted": food.correction_attempted,
        "outlierDetection": serialize_outliers(food.outlier_detection),
        "multiModelValidation": serialize_multi_model(food.detection),
    }


def serialize_analysis(analysis: MealAnalysis) -> dict[str, object]:
    """Render a meal analysis; empty optional sections are omitted."""
    payload: dict[str, object] = {
        "foods": [serialize_food(food) for food in analysis.foods],
        "totalIdentified": analysis.total_identified,
    }
    if analysis.failed_foods:
        payload["failedFoods"] = [serialize_food(food) for food in analysis.failed_foods]
    if analysis.meal_outliers is not None:
        payload["mealOutlierDetection"] = serialize_meal_aggregate(analysis.meal_outliers)
    if analysis.detection_summary:
        payload["multiModelInfo"] = {
            wire_name(key): value for key, value in analysis.detection_summary.items()
        }
    if analysis.message:
        payload["message"] = analysis.message
    return payload
