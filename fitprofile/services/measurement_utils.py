from __future__ import annotations

from typing import Optional

# Body-fat estimate from BMI alone: 1.2 * BMI - 10.45
_BODY_FAT_BMI_FACTOR = 1.2
_BODY_FAT_OFFSET = 10.45


def cm_to_m(value: float) -> float:
    return value / 100


def m_to_cm(value: float) -> float:
    return value * 100


def calculate_bmi(weight_kg: Optional[float], height_cm: Optional[float]) -> Optional[float]:
    """BMI rounded to one decimal, or None when it cannot be computed."""
    raw = raw_bmi(weight_kg, height_cm)
    if raw is None:
        return None
    return round(raw, 1)


def raw_bmi(weight_kg: Optional[float], height_cm: Optional[float]) -> Optional[float]:
    if not weight_kg or not height_cm or height_cm <= 0:
        return None
    height_m = cm_to_m(height_cm)
    return weight_kg / (height_m * height_m)


def estimate_body_fat(bmi: float) -> float:
    return round(_BODY_FAT_BMI_FACTOR * bmi - _BODY_FAT_OFFSET, 1)


def resolve_bmi_category(bmi: Optional[float]) -> Optional[str]:
    if bmi is None:
        return None
    if bmi < 18.5:
        return "Underweight"
    if bmi < 25:
        return "Normal"
    if bmi < 30:
        return "Overweight"
    return "Obese"
