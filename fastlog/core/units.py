"""Parsing and conversion of portion sizes and body weights."""

import re
from dataclasses import dataclass, replace
from typing import Dict, List, Tuple

from fastlog.core.errors import UnrecognizedSizeFormat, UnsupportedUnit, ValidationError

VOLUME = "volume"
WEIGHT = "weight"

_VOLUME_RE = re.compile(
    r"^(\d+(?:\.\d+)?)\s*(ml|milliliters?|l|liters?|litres?|fl\s*oz|fluid\s*ounces?|oz|ounces?"
    r"|cups?|pints?|quarts?|gallons?|tbsp|tablespoons?|tsp|teaspoons?)?$"
)
_WEIGHT_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*(g|grams?|kg|kilograms?|oz|ounces?|lbs?|pounds?)?$")

_VOLUME_ALIASES = (
    (re.compile(r"^(ml|milliliters?)$"), "ml"),
    (re.compile(r"^(l|liters?|litres?)$"), "l"),
    (re.compile(r"^(floz|fluidounces?|oz|ounces?)$"), "fl oz"),
    (re.compile(r"^cups?$"), "cup"),
    (re.compile(r"^pints?$"), "pint"),
    (re.compile(r"^quarts?$"), "quart"),
    (re.compile(r"^gallons?$"), "gallon"),
    (re.compile(r"^(tbsp|tablespoons?)$"), "tbsp"),
    (re.compile(r"^(tsp|teaspoons?)$"), "tsp"),
)
_WEIGHT_ALIASES = (
    (re.compile(r"^(g|grams?)$"), "g"),
    (re.compile(r"^(kg|kilograms?)$"), "kg"),
    (re.compile(r"^(oz|ounces?)$"), "oz"),
    (re.compile(r"^(lbs?|pounds?)$"), "lbs"),
)

# Factors to the base unit: milliliters for volume, grams for weight.
ML_PER_UNIT: Dict[str, float] = {
    "ml": 1,
    "l": 1000,
    "fl oz": 29.5735,
    "cup": 236.588,
    "pint": 473.176,
    "quart": 946.353,
    "gallon": 3785.41,
    "tbsp": 14.7868,
    "tsp": 4.92892,
}
GRAMS_PER_UNIT: Dict[str, float] = {
    "g": 1,
    "kg": 1000,
    "oz": 28.3495,
    "lbs": 453.592,
}

METRIC_UNITS = {"ml", "l", "g", "kg"}

# Unit used when the input carries none.
SMALL_UNITS = {
    (VOLUME, "metric"): "ml",
    (VOLUME, "imperial"): "fl oz",
    (WEIGHT, "metric"): "g",
    (WEIGHT, "imperial"): "oz",
}

_EXAMPLES = {
    (VOLUME, "metric"): ["250ml", "500ml", "1l", "1.5l"],
    (VOLUME, "imperial"): ["8oz", "16oz", "32oz", "1 cup", "2 cups"],
    (WEIGHT, "metric"): ["50g", "100g", "250g", "500g", "1kg"],
    (WEIGHT, "imperial"): ["2oz", "4oz", "8oz", "1lb"],
}


@dataclass(frozen=True)
class SizeSpec:
    value: float
    unit: str
    system: str
    original_input: str = ""

    @property
    def kind(self) -> str:
        return VOLUME if self.unit in ML_PER_UNIT else WEIGHT


def unit_system_of(unit: str) -> str:
    return "metric" if unit in METRIC_UNITS else "imperial"


def _normalize_unit(unit: str, kind: str) -> str:
    compact = re.sub(r"\s+", "", unit.lower())
    aliases = _VOLUME_ALIASES if kind == VOLUME else _WEIGHT_ALIASES
    for pattern, name in aliases:
        if pattern.match(compact):
            return name
    raise UnsupportedUnit(f"Unsupported {kind} unit: {unit}")


def size_examples(kind: str = VOLUME, unit_system: str = "imperial") -> List[str]:
    return list(_EXAMPLES.get((kind, unit_system), []))


def format_size(value: float, unit: str) -> str:
    return f"{value:g} {unit}"


def parse_size(text: str, kind: str = VOLUME, unit_system: str = "imperial") -> SizeSpec:
    """
    Parse "32oz", "500 ml", "2 cups", "1lb" and similar.

    A bare number takes the small unit of ``unit_system``.
    """
    if kind not in (VOLUME, WEIGHT):
        raise ValueError(f"kind must be {VOLUME!r} or {WEIGHT!r}, got {kind!r}")
    clean = str(text).strip().lower()
    match = (_VOLUME_RE if kind == VOLUME else _WEIGHT_RE).match(clean)
    if not match:
        examples = '"32oz", "500ml", "2 cups"' if kind == VOLUME else '"8oz", "250g", "1lb"'
        raise UnrecognizedSizeFormat(f'Invalid {kind} format: "{text}". Use formats like {examples}')

    value = float(match.group(1))
    token = match.group(2)
    unit = _normalize_unit(token, kind) if token else SMALL_UNITS[(kind, unit_system)]
    return SizeSpec(value=value, unit=unit, system=unit_system_of(unit), original_input=str(text))


def _convert(value: float, from_unit: str, to_unit: str, factors: Dict[str, float], kind: str) -> float:
    if from_unit == to_unit:
        return value
    for unit in (from_unit, to_unit):
        if unit not in factors:
            raise UnsupportedUnit(
                f"Unsupported {kind} unit: {unit}. Supported: {', '.join(factors)}"
            )
    base = value * factors[from_unit]
    return round(base / factors[to_unit], 2)


def convert_volume(value: float, from_unit: str, to_unit: str) -> float:
    return _convert(value, from_unit, to_unit, ML_PER_UNIT, VOLUME)


def convert_weight(value: float, from_unit: str, to_unit: str) -> float:
    return _convert(value, from_unit, to_unit, GRAMS_PER_UNIT, WEIGHT)


def convert_to_preferred_system(size: SizeSpec, target_system: str) -> SizeSpec:
    """Re-express ``size`` in ``target_system``, choosing a readable unit."""
    if size.system == target_system:
        return size

    # Magnitude is judged in the target system's small unit: 1000 ml, 1000 g, 16 oz.
    if size.kind == VOLUME:
        if target_system == "metric":
            ml = convert_volume(size.value, size.unit, "ml")
            target_unit = "l" if ml >= 1000 else "ml"
        else:
            target_unit = "fl oz"
        value = convert_volume(size.value, size.unit, target_unit)
    else:
        if target_system == "metric":
            grams = convert_weight(size.value, size.unit, "g")
            target_unit = "kg" if grams >= 1000 else "g"
        else:
            ounces = convert_weight(size.value, size.unit, "oz")
            target_unit = "lbs" if ounces >= 16 else "oz"
        value = convert_weight(size.value, size.unit, target_unit)

    return replace(size, value=value, unit=target_unit, system=target_system)


def parse_weight(text: str, default_unit: str) -> Tuple[float, str]:
    """
    Parse a body weight such as "305.8lbs", "138.5 kg" or "12oz".

    A bare number is read in ``default_unit``.
    """
    clean = str(text).strip().lower()
    match = _WEIGHT_RE.match(clean)
    if not match:
        raise ValidationError(
            f'Invalid weight: "{text}". Use formats like "305.8lbs", "138.5kg" or a plain number'
        )
    value = float(match.group(1))
    if value <= 0:
        raise ValidationError(f'Invalid weight: "{text}". Weight must be positive')
    token = match.group(2)
    unit = _normalize_unit(token, WEIGHT) if token else default_unit
    return value, unit
