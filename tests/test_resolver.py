"""Tests for the nutrition resolver strategy chain."""

import asyncio

from nutrition_estimator.domain.nutrition import NutritionProfile, ServingSpec
from nutrition_estimator.services.nutrition import NutritionService
from nutrition_estimator.services.oracle import Oracle
from nutrition_estimator.services.resolver import NutritionResolver
from tests.conftest import FakeFdcClient, ScriptedOracleClient, as_json, fdc_food

_SERVING = ServingSpec(text="1 cup", grams=240.0)


def _resolver(fdc_client: FakeFdcClient | None, oracle_client: ScriptedOracleClient):
    return NutritionResolver(
        nutrition_service=NutritionService(fdc_client),
        oracle=Oracle(client=oracle_client, model="m", timeout_seconds=1.0),
    )


def test_reference_lookup_wins() -> None:
    fdc_client = FakeFdcClient(
        foods_by_query={
            "white rice": [fdc_food(1, "Rice, white, cooked", calories=130, carbs=28)]
        }
    )
    oracle_client = ScriptedOracleClient()

    resolution = asyncio.run(
        _resolver(fdc_client, oracle_client).resolve("white rice", _SERVING)
    )

    assert resolution.source == "reference"
    assert resolution.nutrition.calories == 312
    assert resolution.reference_description == "Rice, white, cooked"
    assert oracle_client.calls == []


def test_assisted_search_term_is_used_for_text() -> None:
    fdc_client = FakeFdcClient(
        foods_by_query={
            "oatmeal, cooked": [fdc_food(2, "Cereals, oats, cooked", calories=71)]
        }
    )
    oracle_client = ScriptedOracleClient(
        replies={
            "search_term": [
                as_json(
                    {"searchQuery": "Oatmeal, cooked", "alternateQueries": ["Oats"]}
                )
            ]
        }
    )

    resolution = asyncio.run(
        _resolver(fdc_client, oracle_client).resolve(
            "bowl of warm oats", _SERVING, assisted=True
        )
    )

    assert resolution.source == "reference_assisted"
    assert resolution.search_term == "Oatmeal, cooked"
    assert fdc_client.queries == ["bowl of warm oats", "Oatmeal, cooked"]


def test_identical_search_term_skips_second_lookup() -> None:
    fdc_client = FakeFdcClient()
    oracle_client = ScriptedOracleClient(
        replies={
            "search_term": [as_json({"searchQuery": "Kimchi"})],
            "estimate": [as_json({"calories": 23, "protein": 1.7, "carbs": 3.6})],
        }
    )

    resolution = asyncio.run(
        _resolver(fdc_client, oracle_client).resolve("kimchi", _SERVING, assisted=True)
    )

    assert fdc_client.queries == ["kimchi"]
    assert resolution.source == "estimate"


def test_photo_path_skips_search_term_and_estimates() -> None:
    fdc_client = FakeFdcClient()
    oracle_client = ScriptedOracleClient(
        replies={"estimate": [as_json({"calories": 250, "protein": 10, "carbs": 30})]}
    )

    resolution = asyncio.run(
        _resolver(fdc_client, oracle_client).resolve("mystery stew", _SERVING)
    )

    assert resolution.source == "estimate"
    assert resolution.nutrition.calories == 250
    assert oracle_client.kinds() == ["estimate"]
    assert "1 cup of mystery stew" in str(oracle_client.calls[0]["prompt"])


def test_everything_failing_yields_failed_resolution() -> None:
    oracle_client = ScriptedOracleClient(replies={"estimate": ["no idea"]})

    resolution = asyncio.run(
        _resolver(None, oracle_client).resolve("unobtainium", _SERVING, assisted=True)
    )

    assert resolution.source == "failed"
    assert resolution.nutrition is None
    assert oracle_client.kinds() == ["estimate"]


def test_estimate_without_nutrients_is_a_failure() -> None:
    oracle_client = ScriptedOracleClient(
        replies={"estimate": [as_json({"food": "soup", "note": "unknown"})]}
    )

    resolution = asyncio.run(_resolver(None, oracle_client).resolve("soup", _SERVING))

    assert resolution.source == "failed"


def test_out_of_range_numbers_decode_as_unknown() -> None:
    nutrition = NutritionProfile.from_mapping({"calories": 10**400, "protein": 5})

    assert nutrition.calories is None
    assert nutrition.protein == 5


def test_estimate_with_oversized_numbers_degrades() -> None:
    unparsable = ScriptedOracleClient(
        replies={"estimate": ['{"calories": ' + "1" * 5000 + ', "protein": 3}']}
    )
    overflowing = ScriptedOracleClient(
        replies={"estimate": ['{"calories": ' + "9" * 400 + ', "protein": 3}']}
    )

    failed = asyncio.run(_resolver(None, unparsable).resolve("soup", _SERVING))
    partial = asyncio.run(_resolver(None, overflowing).resolve("soup", _SERVING))

    assert failed.source == "failed"
    assert partial.source == "estimate"
    assert partial.nutrition.calories is None
    assert partial.nutrition.protein == 3
