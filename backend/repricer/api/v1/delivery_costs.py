# 运费分摊触发接口 -> 前端 Delivery Costs 页面调用

from __future__ import annotations
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Response, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from repricer.core.config import settings
from repricer.db.session import SessionLocal
from repricer.orchestration.delivery_cost.delivery_cost_task import (
    delivery_manifest_import,
    kick_delivery_cost_fill,
    kick_delivery_cost_recalc,
)
from repricer.repository.delivery_repo import SqlDeliveryCostRepository
from repricer.repository.delivery_run_repo import list_recent_runs
from repricer.services.delivery.delivery_config import load_delivery_config
from repricer.services.delivery.engine import DeliveryCostEngine, parse_manifest
from repricer.services.delivery.errors import InvalidManifestError
from repricer.utils.serialization import to_jsonable


router = APIRouter(prefix="/accounts/{account_id}/delivery-costs", tags=["delivery-costs"])


class ManifestRowIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_number: str = Field(..., alias="orderNumber", min_length=1)
    parcels: int = Field(1, ge=0)
    carrier: str = ""


class ManifestUpload(BaseModel):
    data: List[ManifestRowIn]


class DeliveryRunOut(BaseModel):
    id: str
    kind: str
    status: str
    triggered_by: Optional[str] = None
    rows_in: int = 0
    products_changed: int = 0
    message: Optional[str] = None
    created_at: Optional[Any] = None
    finished_at: Optional[Any] = None


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_engine(db: Session = Depends(get_db)) -> DeliveryCostEngine:
    return DeliveryCostEngine(SqlDeliveryCostRepository(db), config=load_delivery_config())


def _queued(task_id: str) -> Dict[str, Any]:
    return {"queued": True, "task_id": task_id}


def _report_payload(report) -> Dict[str, Any]:
    data = report.to_dict()
    data["products_changed"] = report.products_changed
    return data



@router.post("/recalculate")
def recalculate(
    response: Response,
    account_id: str = Path(..., min_length=1),
    engine: DeliveryCostEngine = Depends(get_engine),
):
    response.headers["Cache-Control"] = "no-store"
    if not settings.DELIVERY_TASKS_INLINE:
        return _queued(kick_delivery_cost_recalc.delay(account_id, "api").id)
    report = engine.recalculate(account_id)
    payload = _report_payload(report)
    payload["message"] = report.message
    return payload


@router.post("/fill-missing")
def fill_missing(
    response: Response,
    account_id: str = Path(..., min_length=1),
    engine: DeliveryCostEngine = Depends(get_engine),
):
    response.headers["Cache-Control"] = "no-store"
    if not settings.DELIVERY_TASKS_INLINE:
        return _queued(kick_delivery_cost_fill.delay(account_id, "api").id)
    report = engine.fill_missing(account_id)
    payload = _report_payload(report)
    payload["message"] = report.message
    return payload


@router.post("/import")
def import_manifest(
    payload: ManifestUpload,
    response: Response,
    account_id: str = Path(..., min_length=1),
    engine: DeliveryCostEngine = Depends(get_engine),
):
    response.headers["Cache-Control"] = "no-store"
    raw = [r.model_dump(by_alias=True) for r in payload.data]
    try:
        rows = parse_manifest(raw)
    except InvalidManifestError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    if not settings.DELIVERY_TASKS_INLINE:
        return _queued(delivery_manifest_import.delay(account_id, raw, "api").id)

    report = engine.import_manifest(account_id, rows)
    out = _report_payload(report)
    out["message"] = "Delivery import complete"
    return out


@router.get("/runs", response_model=List[DeliveryRunOut])
def recent_runs(
    response: Response,
    account_id: str = Path(..., min_length=1),
    limit: int = 20,
    db: Session = Depends(get_db),
):
    response.headers["Cache-Control"] = "no-store"
    rows = list_recent_runs(db, account_id, limit=max(1, min(limit, 100)))
    return [DeliveryRunOut.model_validate(to_jsonable({
        "id": r.id,
        "kind": r.kind,
        "status": r.status,
        "triggered_by": r.triggered_by,
        "rows_in": r.rows_in or 0,
        "products_changed": r.products_changed or 0,
        "message": r.message,
        "created_at": r.created_at,
        "finished_at": r.finished_at,
    })) for r in rows]
