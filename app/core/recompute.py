import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core import formulas
from app.core.config import settings
from app.core.matching import Companion, find_companion
from app.core.metrics import CIRCUMFERENCE_METRICS, DerivedMetric, Metric, RawMetric
from app.core.store import MetricStore, normalize_timestamp
from app.models.sample import MetricSample

logger = logging.getLogger(__name__)

# Held for the whole of each entry point; one writer at a time.
_WRITE_LOCK = threading.RLock()

# Derived metrics that cannot exist at a date once the given input is missing there
NEEDS_HEIGHT = (
    DerivedMetric.BMI,
    DerivedMetric.BASAL_METABOLIC_RATE,
    DerivedMetric.BODY_SURFACE_AREA,
    DerivedMetric.FAT_FREE_MASS_INDEX,
)
NEEDS_BODY_FAT = (
    DerivedMetric.LEAN_BODY_MASS,
    DerivedMetric.FAT_MASS,
    DerivedMetric.FAT_FREE_MASS_INDEX,
)


class SampleNotFoundError(LookupError):
    """No stored sample matched the (metric, value, timestamp) identity."""


@dataclass(frozen=True)
class ProfileSnapshot:
    """Latest value of every raw metric, read from the series."""

    weight: Optional[float] = None
    height: Optional[float] = None
    body_fat: Optional[float] = None
    waist: Optional[float] = None
    bicep: Optional[float] = None
    chest: Optional[float] = None
    thigh: Optional[float] = None
    shoulder: Optional[float] = None
    timestamp: Optional[datetime] = None


PROFILE_FIELDS = {
    RawMetric.WEIGHT: "weight",
    RawMetric.HEIGHT: "height",
    RawMetric.BODY_FAT: "body_fat",
    RawMetric.WAIST: "waist",
    RawMetric.BICEP: "bicep",
    RawMetric.CHEST: "chest",
    RawMetric.THIGH: "thigh",
    RawMetric.SHOULDER: "shoulder",
}


class RecomputeEngine:
    """
    Keeps derived series (BMI, lean/fat mass, FFMI, BMR, BSA) in step with
    the raw series they are computed from.

    Each public entry point is one unit of work: the process-wide write lock
    is held and the session is committed on success, rolled back on failure.
    Raw writes and the recompute they trigger therefore land together.
    """

    def __init__(
        self,
        db: Session,
        *,
        window: Optional[timedelta] = None,
        bmr_age: Optional[int] = None,
        bmr_sex: Optional[str] = None,
    ):
        self.db = db
        self.store = MetricStore(db)
        self.window = window if window is not None else timedelta(hours=settings.MATCH_WINDOW_HOURS)
        self.bmr_age = bmr_age if bmr_age is not None else settings.BMR_REFERENCE_AGE
        self.bmr_sex = bmr_sex or settings.BMR_REFERENCE_SEX

    @contextmanager
    def _unit_of_work(self):
        with _WRITE_LOCK:
            try:
                yield
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

    # ----- temporal matching -----

    def find_companion(self, metric: Metric, target: datetime) -> Optional[Companion]:
        return find_companion(self.store, metric, target, window=self.window)

    # ----- recompute core -----

    def _clear_at(self, metrics, target: datetime) -> None:
        for metric in metrics:
            self.store.delete_at(metric, target)

    def _recompute_for_date(self, target: datetime) -> None:
        target = normalize_timestamp(target)

        weight = self.find_companion(RawMetric.WEIGHT, target)
        if weight is None:
            # No weight anywhere: nothing can be derived at this date
            self._clear_at(DerivedMetric, target)
            return

        height = self.find_companion(RawMetric.HEIGHT, target)
        body_fat = self.find_companion(RawMetric.BODY_FAT, target)
        w = weight.value

        if height is not None:
            h = height.value
            self.store.upsert(
                DerivedMetric.BMI,
                formulas.bmi(w, h),
                target,
                source_weight=w,
                source_height=h,
            )
            self.store.upsert(
                DerivedMetric.BASAL_METABOLIC_RATE,
                formulas.bmr(w, h, age_years=self.bmr_age, sex=self.bmr_sex),
                target,
            )
            self.store.upsert(DerivedMetric.BODY_SURFACE_AREA, formulas.bsa(w, h), target)
        else:
            self._clear_at(NEEDS_HEIGHT, target)

        if body_fat is not None:
            bf = body_fat.value
            lean = formulas.lean_body_mass(w, bf)
            self.store.upsert(DerivedMetric.LEAN_BODY_MASS, lean, target)
            self.store.upsert(DerivedMetric.FAT_MASS, formulas.fat_mass(w, bf), target)
            if height is not None:
                self.store.upsert(
                    DerivedMetric.FAT_FREE_MASS_INDEX,
                    formulas.ffmi(lean, height.value),
                    target,
                )
        else:
            self._clear_at(NEEDS_BODY_FAT, target)

        logger.debug(
            "Recomputed %s (weight=%s, height=%s, body_fat=%s)",
            target.isoformat(),
            w,
            height.value if height else None,
            body_fat.value if body_fat else None,
        )

    def _rebuild_all(self) -> int:
        for metric in DerivedMetric:
            self.store.clear_all(metric)

        dates = self.store.timestamps(RawMetric.WEIGHT)
        for ts in dates:
            self._recompute_for_date(ts)

        logger.info("Rebuilt derived metrics for %d weight dates", len(dates))
        return len(dates)

    def _refresh_weight_date(self, target: datetime) -> None:
        """Recompute `target`, or drop its derived samples if no weight is left there."""
        target = normalize_timestamp(target)
        if target in self.store.timestamps(RawMetric.WEIGHT):
            self._recompute_for_date(target)
        else:
            self._clear_at(DerivedMetric, target)

    def recompute_for_date(self, target: datetime) -> None:
        """Recompute one weight date; a date without a Weight sample is cleared instead."""
        with self._unit_of_work():
            self._refresh_weight_date(target)

    def rebuild_all(self) -> int:
        """Clear every derived series and recompute it from the weight dates."""
        with self._unit_of_work():
            return self._rebuild_all()

    # ----- mutation entry points -----

    def _require_raw(self, metric: Metric) -> RawMetric:
        if not isinstance(metric, RawMetric):
            raise ValueError(f"{metric.value} is derived and cannot be written directly")
        return metric

    def on_weight_changed(self, value: float, date: datetime) -> MetricSample:
        # Weight on other dates is independent, so only this date changes
        with self._unit_of_work():
            sample = self.store.append(RawMetric.WEIGHT, value, date)
            self._recompute_for_date(sample.timestamp)
        return sample

    def _write_and_rebuild(self, metric: RawMetric, value: float, date: datetime) -> MetricSample:
        # Nearest matches may shift for every weight date
        with self._unit_of_work():
            sample = self.store.append(metric, value, date)
            self._rebuild_all()
        return sample

    def on_height_changed(self, value: float, date: datetime) -> MetricSample:
        return self._write_and_rebuild(RawMetric.HEIGHT, value, date)

    def on_body_fat_changed(self, value: float, date: datetime) -> MetricSample:
        return self._write_and_rebuild(RawMetric.BODY_FAT, value, date)

    def on_circumference_changed(self, metric: RawMetric, value: float, date: datetime) -> MetricSample:
        if metric not in CIRCUMFERENCE_METRICS:
            raise ValueError(f"{metric.value} is not a circumference metric")
        return self._write_and_rebuild(metric, value, date)

    def on_delete(self, metric: Metric, value: float, timestamp: datetime) -> int:
        metric = self._require_raw(metric)
        with self._unit_of_work():
            removed = self.store.delete_by_identity(metric, value, timestamp)
            if not removed:
                raise SampleNotFoundError(
                    f"No {metric.value} sample with value {value} at {timestamp.isoformat()}"
                )

            if metric is RawMetric.WEIGHT:
                self._refresh_weight_date(timestamp)
            else:
                self._rebuild_all()
        return removed

    def on_sample_replaced(
        self,
        metric: Metric,
        old_value: float,
        old_timestamp: datetime,
        value: float,
        timestamp: datetime,
    ) -> MetricSample:
        """Edit a raw sample: remove the old identity and write the new one."""
        metric = self._require_raw(metric)
        with self._unit_of_work():
            if not self.store.delete_by_identity(metric, old_value, old_timestamp):
                raise SampleNotFoundError(
                    f"No {metric.value} sample with value {old_value} at {old_timestamp.isoformat()}"
                )
            sample = self.store.append(metric, value, timestamp)

            if metric is RawMetric.WEIGHT:
                self._refresh_weight_date(old_timestamp)
                self._recompute_for_date(sample.timestamp)
            else:
                self._rebuild_all()
        return sample

    # ----- reads -----

    def get_history(self, metric: Metric) -> list[MetricSample]:
        """
        Samples of `metric` ordered by time.

        Reading a derived metric rebuilds every derived series first, so the
        read costs O(series length) writes; personal series are small. Store
        failures on this path are logged and yield an empty list.
        """
        try:
            if isinstance(metric, DerivedMetric):
                self.rebuild_all()
            with _WRITE_LOCK:
                return self.store.query(metric)
        except SQLAlchemyError:
            logger.exception("Could not load history for %s", metric.value)
            self.db.rollback()
            return []

    def latest_value(self, metric: Metric) -> Optional[float]:
        history = self.get_history(metric)
        if not history:
            return None
        return max(history, key=lambda s: (s.timestamp, s.id)).value

    def profile(self) -> ProfileSnapshot:
        """Latest raw values; store failures are logged and yield an empty snapshot."""
        values = {}
        newest: Optional[datetime] = None
        try:
            for metric, field in PROFILE_FIELDS.items():
                sample = self.store.latest(metric)
                if sample is None:
                    continue
                values[field] = sample.value
                if newest is None or sample.timestamp > newest:
                    newest = sample.timestamp
        except SQLAlchemyError:
            logger.exception("Could not load profile")
            self.db.rollback()
            return ProfileSnapshot()
        return ProfileSnapshot(timestamp=newest, **values)
