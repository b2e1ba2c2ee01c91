"""Nutrition domain models."""

import math
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace

NUTRIENT_FIELDS: tuple[str, ...] = (
    "calories",
    "protein",
    "carbs",
    "fat",
    "fiber",
    "sodium",
    "sugar",
    "cholesterol",
    "vitamin_a",
    "vitamin_c",
    "vitamin_d",
    "vitamin_e",
    "vitamin_k",
    "vitamin_b1",
    "vitamin_b2",
    "vitamin_b3",
    "vitamin_b6",
    "vitamin_b12",
    "folate",
    "calcium",
    "iron",
    "magnesium",
    "zinc",
    "potassium",
)

# Decimal places kept per nutrient; anything missing here keeps one decimal.
_PRECISION: dict[str, int] = {
    "calories": 0,
    "sodium": 0,
    "cholesterol": 0,
    "vitamin_a": 0,
    "folate": 0,
    "calcium": 0,
    "magnesium": 0,
    "potassium": 0,
    "vitamin_e": 2,
    "vitamin_b1": 2,
    "vitamin_b2": 2,
    "vitamin_b6": 2,
    "vitamin_b12": 2,
    "iron": 2,
    "zinc": 2,
}

_ALIASES: dict[str, tuple[str, ...]] = {
    "calories": ("cal", "kcal", "energy"),
    "carbs": ("carbohydrates", "carbohydrate"),
    "sugar": ("sugars",),
}


def wire_name(field_name: str) -> str:
    """Return the camelCase name used in JSON payloads (``vitamin_b12`` -> ``vitaminB12``)."""
    head, *rest = field_name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def coerce_nutrient(value: object) -> float | None:
    """Coerce a raw payload value into a non-negative finite number or ``None``."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number) or number < 0:
        return None
    return number


def round_nutrient(field_name: str, value: float) -> float:
    """Round a nutrient value to its display precision."""
    return float(round(value, _PRECISION.get(field_name, 1)))


@dataclass(frozen=True)
class NutritionProfile:
    """Per-serving nutrient values; ``None`` means unknown."""

    calories: float | None = None
    protein: float | None = None
    carbs: float | None = None
    fat: float | None = None
    fiber: float | None = None
    sodium: float | None = None
    sugar: float | None = None
    cholesterol: float | None = None
    vitamin_a: float | None = None
    vitamin_c: float | None = None
    vitamin_d: float | None = None
    vitamin_e: float | None = None
    vitamin_k: float | None = None
    vitamin_b1: float | None = None
    vitamin_b2: float | None = None
    vitamin_b3: float | None = None
    vitamin_b6: float | None = None
    vitamin_b12: float | None = None
    folate: float | None = None
    calcium: float | None = None
    iron: float | None = None
    magnesium: float | None = None
    zinc: float | None = None
    potassium: float | None = None

    @classmethod
    def from_mapping(cls, values: Mapping[str, object]) -> "NutritionProfile":
        """Decode a loosely structured payload.

        Keys may be snake_case, camelCase or a known alias. Values that are
        negative or not numbers are treated as unknown rather than zero.
        """
        decoded: dict[str, float | None] = {}
        for field_name in NUTRIENT_FIELDS:
            raw = None
            for key in (field_name, wire_name(field_name), *_ALIASES.get(field_name, ())):
                if values.get(key) is not None:
                    raw = values[key]
                    break
            number = coerce_nutrient(raw)
            decoded[field_name] = (
                round_nutrient(field_name, number) if number is not None else None
            )
        return cls(**decoded)

    def get(self, field_name: str) -> float | None:
        """Return a nutrient value by field name."""
        return getattr(self, field_name)

    def with_values(self, **changes: float | None) -> "NutritionProfile":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def as_dict(self) -> dict[str, float | None]:
        """Return all fields keyed by field name."""
        return {item.name: getattr(self, item.name) for item in fields(self)}

    def as_wire_dict(self) -> dict[str, float | None]:
        """Return all fields keyed by their camelCase wire names."""
        return {wire_name(name): value for name, value in self.as_dict().items()}

    def macro_calories(self) -> float:
        """Energy implied by macros (4/4/9 kcal per gram); unknown counts as zero."""
        protein = self.protein or 0.0
        carbs = self.carbs or 0.0
        fat = self.fat or 0.0
        return protein * 4 + carbs * 4 + fat * 9


@dataclass(frozen=True)
class ServingSpec:
    """Serving expression with its derived gram weight."""

    text: str
    grams: float
    defaulted: bool = False


@dataclass(frozen=True)
class FoodCandidate:
    """One ranked reference-database match scaled to the requested serving."""

    fdc_id: int
    description: str
    data_type: str | None
    nutrition: NutritionProfile
    rank: int
