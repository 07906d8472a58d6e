from __future__ import annotations

import pytest

from app.core import formulas


def test_bmi_uses_height_in_metres():
    assert formulas.bmi(70, 175) == pytest.approx(22.857, rel=1e-3)


def test_bmr_mifflin_st_jeor_by_sex():
    assert formulas.bmr(70, 175, age_years=30, sex="male") == pytest.approx(1648.75)
    assert formulas.bmr(70, 175, age_years=30, sex="female") == pytest.approx(1482.75)


def test_bmr_rejects_unknown_sex():
    with pytest.raises(ValueError):
        formulas.bmr(70, 175, sex="other")


def test_bsa_du_bois():
    assert formulas.bsa(70, 175) == pytest.approx(1.85, abs=0.01)


def test_body_composition_split():
    lean = formulas.lean_body_mass(80, 20)
    fat = formulas.fat_mass(80, 20)
    assert lean == pytest.approx(64.0)
    assert fat == pytest.approx(16.0)
    assert lean + fat == pytest.approx(80.0)
    assert formulas.ffmi(lean, 180) == pytest.approx(19.753, rel=1e-3)


@pytest.mark.parametrize(
    "fn, args",
    [
        (formulas.bmi, (70, 0)),
        (formulas.bmi, (-1, 175)),
        (formulas.bsa, (70, -5)),
        (formulas.lean_body_mass, (80, 120)),
        (formulas.fat_mass, (80, -1)),
        (formulas.ffmi, (60, 0)),
    ],
)
def test_invalid_inputs_raise(fn, args):
    with pytest.raises(ValueError):
        fn(*args)
