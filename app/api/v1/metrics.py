# app/api/v1/metrics.py

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core import db as db_module
from app.core.metrics import Metric, RawMetric, parse_metric
from app.core.recompute import RecomputeEngine, SampleNotFoundError
from app.models.sample import MetricSample

router = APIRouter(prefix="/metrics", tags=["metrics"])


def get_db():
    if not db_module.engine or not db_module.SessionLocal:
        raise HTTPException(503, "DB not configured (POSTGRES_DSN missing)")
    db = db_module.SessionLocal()
    try:
        yield db
    finally:
        db.close()


# ---------- Pydantic schemas ----------

class SampleIn(BaseModel):
    value: float = Field(..., gt=0, description="Measurement in the metric's unit")
    timestamp: datetime = Field(..., description="ISO8601 timestamp of measurement")


class BodyFatIn(SampleIn):
    value: float = Field(..., gt=0, lt=100, description="Body fat in percent")


class SampleReplaceIn(SampleIn):
    old_value: float
    old_timestamp: datetime


class SampleOut(BaseModel):
    metric_name: str
    unit: str
    value: float
    timestamp: datetime
    source_weight: float | None = None
    source_height: float | None = None


class ProfileOut(BaseModel):
    weight: float | None
    height: float | None
    body_fat: float | None
    waist: float | None
    bicep: float | None
    chest: float | None
    thigh: float | None
    shoulder: float | None
    timestamp: datetime | None


def _to_out(sample: MetricSample) -> SampleOut:
    return SampleOut(
        metric_name=sample.metric_name,
        unit=sample.unit,
        value=sample.value,
        timestamp=sample.timestamp,
        source_weight=sample.source_weight,
        source_height=sample.source_height,
    )


def _resolve(name: str) -> Metric:
    try:
        return parse_metric(name)
    except ValueError:
        raise HTTPException(404, f"Unknown metric: {name}")


def _resolve_raw(name: str) -> RawMetric:
    metric = _resolve(name)
    if not isinstance(metric, RawMetric):
        raise HTTPException(400, f"{metric.value} is derived and cannot be edited directly")
    return metric


def _mutate(fn, *args):
    """Run an engine mutation, mapping domain and store errors to HTTP errors."""
    try:
        return fn(*args)
    except SampleNotFoundError as e:
        raise HTTPException(404, str(e))
    except ValueError as e:
        raise HTTPException(400, str(e))
    except SQLAlchemyError as e:
        raise HTTPException(500, f"Metric update failed: {e.__class__.__name__}")


# ---------- Endpoints ----------

@router.post("/weight", response_model=SampleOut)
def record_weight(payload: SampleIn, db: Session = Depends(get_db)):
    """Store a weight sample (kg) and recompute that date's derived metrics."""
    engine = RecomputeEngine(db)
    sample = _mutate(engine.on_weight_changed, payload.value, payload.timestamp)
    return _to_out(sample)


@router.post("/height", response_model=SampleOut)
def record_height(payload: SampleIn, db: Session = Depends(get_db)):
    """Store a height sample (cm) and rebuild every derived series."""
    engine = RecomputeEngine(db)
    sample = _mutate(engine.on_height_changed, payload.value, payload.timestamp)
    return _to_out(sample)


@router.post("/body-fat", response_model=SampleOut)
def record_body_fat(payload: BodyFatIn, db: Session = Depends(get_db)):
    engine = RecomputeEngine(db)
    sample = _mutate(engine.on_body_fat_changed, payload.value, payload.timestamp)
    return _to_out(sample)


@router.post("/circumference/{metric}", response_model=SampleOut)
def record_circumference(metric: str, payload: SampleIn, db: Session = Depends(get_db)):
    """Store a waist/bicep/chest/thigh/shoulder sample (cm)."""
    raw = _resolve_raw(metric)
    engine = RecomputeEngine(db)
    sample = _mutate(engine.on_circumference_changed, raw, payload.value, payload.timestamp)
    return _to_out(sample)


@router.post("/rebuild")
def rebuild_derived(db: Session = Depends(get_db)):
    engine = RecomputeEngine(db)
    dates = _mutate(engine.rebuild_all)
    return {"status": "ok", "weight_dates": dates}


@router.get("/profile", response_model=ProfileOut)
def get_profile(db: Session = Depends(get_db)):
    """
    Latest value of every raw metric.
    """
    snap = RecomputeEngine(db).profile()
    return ProfileOut(
        weight=snap.weight,
        height=snap.height,
        body_fat=snap.body_fat,
        waist=snap.waist,
        bicep=snap.bicep,
        chest=snap.chest,
        thigh=snap.thigh,
        shoulder=snap.shoulder,
        timestamp=snap.timestamp,
    )


@router.get("/{metric}/history", response_model=list[SampleOut])
def get_history(metric: str, db: Session = Depends(get_db)):
    """
    Return the time series for a metric, oldest first.

    Derived metrics are rebuilt from raw data before they are returned.
    """
    m = _resolve(metric)
    return [_to_out(s) for s in RecomputeEngine(db).get_history(m)]


@router.get("/{metric}/latest")
def get_latest(metric: str, db: Session = Depends(get_db)):
    m = _resolve(metric)
    value = RecomputeEngine(db).latest_value(m)
    if value is None:
        return {"status": "ok", "metric": m.value, "found": False}
    return {"status": "ok", "metric": m.value, "found": True, "value": value, "unit": m.unit}


@router.put("/{metric}", response_model=SampleOut)
def replace_sample(metric: str, payload: SampleReplaceIn, db: Session = Depends(get_db)):
    """
    Edit a raw sample identified by (old_value, old_timestamp).
    """
    raw = _resolve_raw(metric)
    if raw is RawMetric.BODY_FAT and payload.value >= 100:
        raise HTTPException(422, "Body fat must be below 100%")
    engine = RecomputeEngine(db)
    sample = _mutate(
        engine.on_sample_replaced,
        raw,
        payload.old_value,
        payload.old_timestamp,
        payload.value,
        payload.timestamp,
    )
    return _to_out(sample)


@router.delete("/{metric}")
def delete_sample(metric: str, value: float, timestamp: datetime, db: Session = Depends(get_db)):
    """
    Delete a raw sample by its exact value and timestamp.
    """
    raw = _resolve_raw(metric)
    engine = RecomputeEngine(db)
    removed = _mutate(engine.on_delete, raw, value, timestamp)
    return {"status": "ok", "deleted": removed}
