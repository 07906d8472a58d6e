"""
Formulas for derived body metrics.

Units are fixed: weight in kg, height in cm, body fat in percent.
Each function is pure and may be swapped for another standard formula
as long as the units stay the same.
"""


def _check_positive(name: str, value: float) -> None:
    if value is None or value <= 0:
        raise ValueError(f"{name} must be greater than 0, got {value!r}")


def _check_body_fat(body_fat_pct: float) -> None:
    if body_fat_pct is None or not 0 <= body_fat_pct <= 100:
        raise ValueError(f"body_fat_pct must be between 0 and 100, got {body_fat_pct!r}")


def bmi(weight_kg: float, height_cm: float) -> float:
    """BMI = weight_kg / (height_m)²"""
    _check_positive("weight_kg", weight_kg)
    _check_positive("height_cm", height_cm)
    height_m = height_cm / 100.0
    return weight_kg / (height_m ** 2)


def bmr(weight_kg: float, height_cm: float, *, age_years: int = 30, sex: str = "male") -> float:
    """
    Basal metabolic rate in kcal/day (Mifflin-St Jeor).

    BMR = 10 * weight_kg + 6.25 * height_cm - 5 * age + s,
    where s is +5 for men and -161 for women.
    """
    _check_positive("weight_kg", weight_kg)
    _check_positive("height_cm", height_cm)

    sex_key = (sex or "").strip().lower()
    if sex_key in ("male", "m"):
        offset = 5.0
    elif sex_key in ("female", "f"):
        offset = -161.0
    else:
        raise ValueError(f"sex must be 'male' or 'female', got {sex!r}")

    return 10.0 * weight_kg + 6.25 * height_cm - 5.0 * age_years + offset


def bsa(weight_kg: float, height_cm: float) -> float:
    """Body surface area in m² (Du Bois)."""
    _check_positive("weight_kg", weight_kg)
    _check_positive("height_cm", height_cm)
    return 0.007184 * (weight_kg ** 0.425) * (height_cm ** 0.725)


def lean_body_mass(weight_kg: float, body_fat_pct: float) -> float:
    _check_positive("weight_kg", weight_kg)
    _check_body_fat(body_fat_pct)
    return weight_kg * (1.0 - body_fat_pct / 100.0)


def fat_mass(weight_kg: float, body_fat_pct: float) -> float:
    _check_positive("weight_kg", weight_kg)
    _check_body_fat(body_fat_pct)
    return weight_kg * body_fat_pct / 100.0


def ffmi(lean_mass_kg: float, height_cm: float) -> float:
    """Fat-free mass index: lean mass (kg) / (height_m)²"""
    _check_positive("height_cm", height_cm)
    if lean_mass_kg is None or lean_mass_kg < 0:
        raise ValueError(f"lean_mass_kg must not be negative, got {lean_mass_kg!r}")
    height_m = height_cm / 100.0
    return lean_mass_kg / (height_m ** 2)
