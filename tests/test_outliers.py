"""Tests for outlier detection and auto-correction."""

import pytest

from nutrition_estimator.domain.nutrition import NutritionProfile
from nutrition_estimator.services.outliers import (
    TYPICAL_SERVING_MAX,
    OutlierService,
    classify_outlier_severity,
    detect_food_outliers,
    detect_meal_outliers,
    get_corrected_value,
    run_outlier_detection,
)

_SEVERITY_ORDER = {None: 0, "info": 1, "warning": 2, "auto_correct": 3}


@pytest.mark.parametrize("nutrient", sorted(TYPICAL_SERVING_MAX))
def test_severity_is_monotonic_in_value(nutrient: str) -> None:
    typical = TYPICAL_SERVING_MAX[nutrient]
    ranks = [
        _SEVERITY_ORDER[classify_outlier_severity(nutrient, typical * step / 10)[0]]
        for step in range(0, 80)
    ]

    assert ranks == sorted(ranks)


def test_severity_breakpoints() -> None:
    assert classify_outlier_severity("vitamin_c", 1000) == (None, 2.0)
    assert classify_outlier_severity("vitamin_c", 1001)[0] == "info"
    assert classify_outlier_severity("vitamin_c", 1500)[0] == "info"
    assert classify_outlier_severity("vitamin_c", 1501)[0] == "warning"
    assert classify_outlier_severity("vitamin_c", 2500)[0] == "warning"
    assert classify_outlier_severity("vitamin_c", 2501)[0] == "auto_correct"


def test_unknown_nutrient_or_value_is_not_classified() -> None:
    assert classify_outlier_severity("caffeine", 500) == (None, 0.0)
    assert classify_outlier_severity("iron", None) == (None, 0.0)


@pytest.mark.parametrize(
    ("nutrient", "value"),
    [("vitamin_a", 90000), ("sodium", 5000), ("iron", 30), ("calories", 7000)],
)
def test_corrected_value_is_idempotent(nutrient: str, value: float) -> None:
    once = get_corrected_value(nutrient, value)

    assert get_corrected_value(nutrient, once) == once


def test_extreme_value_is_clamped_to_typical_max() -> None:
    assert get_corrected_value("vitamin_a", 90000) == 5000
    assert get_corrected_value("iron", 30) == 30


def test_extreme_vitamin_is_auto_corrected() -> None:
    report = detect_food_outliers(
        NutritionProfile(calories=120, protein=3, carbs=20, fat=3, vitamin_a=90000),
        "carrot juice",
    )

    assert report.detected
    assert report.corrected_nutrition.vitamin_a == 5000
    correction = report.auto_corrections["vitamin_a"]
    assert correction.original == 90000
    assert correction.corrected == 5000
    assert report.total_corrected == 1
    assert report.flagged_nutrients[0].severity == "auto_correct"
    assert report.flagged_nutrients[0].ratio == 18.0


def test_protein_with_zero_calories_gets_calories_from_macros() -> None:
    report = detect_food_outliers(NutritionProfile(calories=0, protein=30), "whey")

    assert report.corrected_nutrition.calories == 120
    assert report.auto_corrections["calories"].original == 0
    assert report.cross_nutrient_issues[0].name == "High protein but zero calories"


def test_macro_calories_round_half_up() -> None:
    report = detect_food_outliers(
        NutritionProfile(calories=0, protein=30, carbs=0, fat=0.5), "whey"
    )

    assert report.corrected_nutrition.calories == 125


def test_unknown_calories_count_as_zero_for_relationships() -> None:
    report = detect_food_outliers(NutritionProfile(fat=20), "butter")

    assert report.corrected_nutrition.calories == 180
    assert report.auto_corrections["calories"].original is None


def test_sugar_above_carbs_only_touches_sugar() -> None:
    original = NutritionProfile(calories=150, protein=1, carbs=30.27, fat=1, sugar=45)

    report = detect_food_outliers(original, "soda")

    corrected = report.corrected_nutrition
    assert corrected.sugar == 30.2
    assert corrected.sugar <= corrected.carbs * 1.1
    assert set(report.auto_corrections) == {"sugar"}
    assert corrected.with_values(sugar=original.sugar) == original


def test_fiber_above_carbs_is_capped() -> None:
    report = detect_food_outliers(
        NutritionProfile(calories=60, protein=2, carbs=10, fat=1, fiber=15), "bran"
    )

    assert report.corrected_nutrition.fiber == 10
    assert report.cross_nutrient_issues[0].severity == "auto_correct"


def test_warning_relationships_do_not_correct() -> None:
    report = detect_food_outliers(
        NutritionProfile(calories=50, protein=1, carbs=10, fat=0.5, iron=18),
        "fortified cereal",
    )

    assert [issue.name for issue in report.cross_nutrient_issues] == [
        "High iron without protein"
    ]
    assert report.auto_corrections == {}


def test_vitamin_a_rule_treats_unknown_vitamins_as_negligible() -> None:
    report = detect_food_outliers(
        NutritionProfile(calories=40, protein=1, carbs=9, fat=0.2, vitamin_a=4000),
        "carrots",
    )

    assert report.cross_nutrient_issues[0].severity == "warning"
    assert report.flagged_nutrients == []


def test_field_corrected_twice_keeps_first_original() -> None:
    report = detect_food_outliers(
        NutritionProfile(calories=100, protein=1, carbs=40, fat=0, sugar=600),
        "syrup",
    )

    correction = report.auto_corrections["sugar"]
    assert correction.original == 600
    assert correction.corrected == 40
    assert ";" in correction.reason


def test_auto_correct_disabled_reports_without_changes() -> None:
    profile = NutritionProfile(calories=0, protein=30, vitamin_a=90000)

    report = detect_food_outliers(profile, "odd", auto_correct=False)

    assert report.detected
    assert report.auto_corrections == {}
    assert report.corrected_nutrition == profile


def test_run_outlier_detection_hides_info_flags_but_counts_them() -> None:
    report = run_outlier_detection(
        NutritionProfile(calories=300, protein=10, carbs=50, fat=6, vitamin_c=1200),
        "orange juice",
    )

    assert report.flagged_nutrients == []
    assert report.total_flagged == 1
    assert report.detected


def test_clean_profile_has_no_outliers() -> None:
    report = run_outlier_detection(
        NutritionProfile(calories=95, protein=0.5, carbs=25, fat=0.3), "apple"
    )

    assert not report.detected
    assert report.total_flagged == 0
    assert report.total_corrected == 0


def test_meal_sodium_total_is_flagged() -> None:
    aggregate = detect_meal_outliers(
        [
            NutritionProfile(calories=400, sodium=3000),
            NutritionProfile(calories=300, sodium=3000),
        ]
    )

    assert aggregate.has_aggregate_outliers
    assert aggregate.meal_totals.sodium == 6000
    flagged = {item.nutrient: item for item in aggregate.flagged_totals}
    assert flagged["sodium"].total == 6000
    assert flagged["sodium"].percent_dri == 261
    assert flagged["sodium"].percent_dri > 200
    assert "sodium" in aggregate.summary


def test_empty_meal_is_not_detected() -> None:
    assert detect_meal_outliers([]).has_aggregate_outliers is False
    assert detect_meal_outliers([None]).has_aggregate_outliers is False


def test_disabled_service_skips_checks() -> None:
    service = OutlierService(enabled=False)

    assert service.scan_food(NutritionProfile(calories=0, protein=30), "x") is None
    assert service.scan_meal([NutritionProfile(sodium=9000)]) is None
