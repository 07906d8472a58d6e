from enum import Enum


class RawMetric(str, Enum):
    """Measurements entered directly by the user."""

    WEIGHT = "Weight"
    HEIGHT = "Height"
    BODY_FAT = "BodyFat"
    WAIST = "Waist"
    BICEP = "Bicep"
    CHEST = "Chest"
    THIGH = "Thigh"
    SHOULDER = "Shoulder"

    @property
    def unit(self) -> str:
        return RAW_UNITS[self]


class DerivedMetric(str, Enum):
    """Metrics computed from raw measurements; written only by the recompute engine."""

    BMI = "BMI"
    LEAN_BODY_MASS = "LeanBodyMass"
    FAT_MASS = "FatMass"
    FAT_FREE_MASS_INDEX = "FatFreeMassIndex"
    BASAL_METABOLIC_RATE = "BasalMetabolicRate"
    BODY_SURFACE_AREA = "BodySurfaceArea"

    @property
    def unit(self) -> str:
        return DERIVED_UNITS[self]


RAW_UNITS = {
    RawMetric.WEIGHT: "kg",
    RawMetric.HEIGHT: "cm",
    RawMetric.BODY_FAT: "%",
    RawMetric.WAIST: "cm",
    RawMetric.BICEP: "cm",
    RawMetric.CHEST: "cm",
    RawMetric.THIGH: "cm",
    RawMetric.SHOULDER: "cm",
}

DERIVED_UNITS = {
    DerivedMetric.BMI: "",
    DerivedMetric.LEAN_BODY_MASS: "kg",
    DerivedMetric.FAT_MASS: "kg",
    DerivedMetric.FAT_FREE_MASS_INDEX: "",
    DerivedMetric.BASAL_METABOLIC_RATE: "kcal",
    DerivedMetric.BODY_SURFACE_AREA: "m²",
}

CIRCUMFERENCE_METRICS = frozenset(
    {
        RawMetric.WAIST,
        RawMetric.BICEP,
        RawMetric.CHEST,
        RawMetric.THIGH,
        RawMetric.SHOULDER,
    }
)

Metric = RawMetric | DerivedMetric


def parse_metric(name: str) -> Metric:
    """
    Resolve a metric name (e.g. "Weight", "BMI") to its enum member.

    Unknown names raise ValueError instead of being silently ignored.
    """
    for enum_cls in (RawMetric, DerivedMetric):
        try:
            return enum_cls(name)
        except ValueError:
            continue
    raise ValueError(f"Unknown metric: {name}")
