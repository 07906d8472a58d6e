from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from app.core.matching import find_companion
from app.core.metrics import RawMetric
from app.core.store import MetricStore

T0 = datetime(2024, 3, 1, 8, 0, 0)


def day(n: float) -> datetime:
    return T0 + timedelta(days=n)


@pytest.fixture
def store(db):
    return MetricStore(db)


def test_empty_series_has_no_companion(store):
    assert find_companion(store, RawMetric.HEIGHT, day(0)) is None


def test_falls_back_to_closest_sample_outside_window(store):
    store.append(RawMetric.HEIGHT, 180.0, day(100))

    match = find_companion(store, RawMetric.HEIGHT, day(0))

    assert match is not None
    assert match.value == 180.0
    assert match.timestamp == day(100)
    assert match.distance == timedelta(days=100)
    assert match.in_window is False


def test_prefers_closer_sample_within_window(store):
    store.append(RawMetric.HEIGHT, 170.0, day(0))
    store.append(RawMetric.HEIGHT, 180.0, day(1.5))

    match = find_companion(store, RawMetric.HEIGHT, day(1))

    assert match.value == 180.0
    assert match.in_window is True
    assert match.distance == timedelta(hours=12)


def test_equal_distance_picks_earlier_timestamp(store):
    # Inserted out of order to make sure the tie-break is not insertion order
    store.append(RawMetric.HEIGHT, 180.0, day(2))
    store.append(RawMetric.HEIGHT, 170.0, day(0))

    match = find_companion(store, RawMetric.HEIGHT, day(1))

    assert match.value == 170.0
    assert match.timestamp == day(0)
    assert match.in_window is True


def test_window_bounds_are_inclusive(store):
    store.append(RawMetric.BODY_FAT, 18.0, day(1))

    match = find_companion(store, RawMetric.BODY_FAT, day(0))

    assert match.in_window is True
    assert match.distance == timedelta(hours=24)


def test_same_timestamp_prefers_latest_insert(store):
    store.append(RawMetric.WEIGHT, 70.0, day(0))
    store.append(RawMetric.WEIGHT, 71.5, day(0))

    assert find_companion(store, RawMetric.WEIGHT, day(0)).value == 71.5


def test_custom_window(store):
    store.append(RawMetric.HEIGHT, 175.0, day(0) + timedelta(hours=3))

    match = find_companion(store, RawMetric.HEIGHT, day(0), window=timedelta(hours=2))

    assert match.value == 175.0
    assert match.in_window is False


def test_aware_target_is_compared_in_utc(store):
    store.append(RawMetric.HEIGHT, 175.0, day(0))
    target = day(0).replace(tzinfo=timezone.utc).astimezone(timezone(timedelta(hours=2)))

    match = find_companion(store, RawMetric.HEIGHT, target)

    assert match.distance == timedelta(0)
