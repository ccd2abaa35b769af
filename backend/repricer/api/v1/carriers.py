# 承运商运费配置接口 (Delivery Costs 页面)

from __future__ import annotations
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from repricer.db.session import SessionLocal
from repricer.repository import carrier_repo
from repricer.services.delivery.carrier_registry import carrier_display_name
from repricer.services.delivery.errors import CarrierNotFoundError
from repricer.services.delivery.types import Carrier


router = APIRouter(prefix="/accounts/{account_id}/carriers", tags=["carriers"])


class CarrierOut(BaseModel):
    carrier_id: str
    carrier_name: str
    cost_per_shipment: float
    is_active: bool
    last_updated: Optional[str] = None


class CarrierIn(BaseModel):
    carrier_name: Optional[str] = Field(None, max_length=128)
    cost_per_shipment: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    is_active: bool = True


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _serialize(row) -> CarrierOut:
    rec = carrier_repo.to_record(row)
    return CarrierOut(
        carrier_id=rec.carrier_id,
        carrier_name=rec.carrier_name,
        cost_per_shipment=float(rec.cost_per_shipment),
        is_active=rec.is_active,
        last_updated=rec.last_updated.isoformat() if rec.last_updated else None,
    )


def _canonical_id(carrier_id: str) -> str:
    # only the closed carrier set can be configured; 'unknown' never carries a cost
    parsed = Carrier.parse(carrier_id)
    if parsed is Carrier.UNKNOWN:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=f"unsupported carrier_id '{carrier_id}'")
    return parsed.value


def _get_or_404(db: Session, account_id: str, carrier_id: str):
    try:
        return carrier_repo.require_carrier(db, account_id, carrier_id)
    except CarrierNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc



@router.get("", response_model=List[CarrierOut])
def list_carriers(response: Response, account_id: str = Path(..., min_length=1), db: Session = Depends(get_db)):
    response.headers["Cache-Control"] = "no-store"
    return [_serialize(r) for r in carrier_repo.list_carriers(db, account_id)]


@router.get("/{carrier_id}", response_model=CarrierOut)
def get_carrier(
    response: Response,
    account_id: str = Path(..., min_length=1),
    carrier_id: str = Path(..., min_length=1),
    db: Session = Depends(get_db),
):
    response.headers["Cache-Control"] = "no-store"
    return _serialize(_get_or_404(db, account_id, _canonical_id(carrier_id)))


@router.put("/{carrier_id}", response_model=CarrierOut)
def put_carrier(
    payload: CarrierIn,
    response: Response,
    account_id: str = Path(..., min_length=1),
    carrier_id: str = Path(..., min_length=1),
    db: Session = Depends(get_db),
):
    response.headers["Cache-Control"] = "no-store"
    cid = _canonical_id(carrier_id)
    row = carrier_repo.upsert_carrier(
        db,
        account_id,
        cid,
        carrier_name=payload.carrier_name or carrier_display_name(cid),
        cost_per_shipment=payload.cost_per_shipment,
        is_active=payload.is_active,
    )
    db.commit()
    return _serialize(row)


@router.delete("/{carrier_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_carrier(
    account_id: str = Path(..., min_length=1),
    carrier_id: str = Path(..., min_length=1),
    db: Session = Depends(get_db),
):
    cid = _canonical_id(carrier_id)
    _get_or_404(db, account_id, cid)
    carrier_repo.delete_carrier(db, account_id, cid)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
