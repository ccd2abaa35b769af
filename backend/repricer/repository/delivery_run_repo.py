# 运费分摊运行记录 (delivery_cost_runs)

from __future__ import annotations
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from repricer.db.model.delivery_run import DeliveryCostRun
from repricer.utils.clock import now_utc


_MESSAGE_MAX = 2000


def create_delivery_run(
    db: Session,
    account_id: str,
    kind: str,
    triggered_by: str,
    rows_in: int = 0,
) -> str:
    run = DeliveryCostRun(
        id=uuid.uuid4().hex,   # String(32)
        account_id=account_id,
        kind=kind,
        status="pending",
        triggered_by=triggered_by,
        rows_in=rows_in,
        products_changed=0,
    )
    db.add(run)
    db.commit()
    return run.id


def mark_delivery_run_running(db: Session, run_id: str) -> bool:
    run = db.get(DeliveryCostRun, run_id)
    if not run:
        return False
    run.status = "running"
    db.commit()
    return True


"""
标记运行结束
    - status: "completed" 或 "failed"
    - products_changed: 本次写回的产品数
    - report: 报告 (already JSON-able)
    返回 False 表示未找到该 run
"""
def finish_delivery_run(
    db: Session,
    run_id: str,
    status: str,
    products_changed: int = 0,
    message: Optional[str] = None,
    report: Optional[Dict[str, Any]] = None,
) -> bool:
    run = db.get(DeliveryCostRun, run_id)
    if not run:
        return False

    run.status = status
    run.products_changed = products_changed
    run.finished_at = now_utc()
    if message:
        run.message = (message[:_MESSAGE_MAX] + "…") if len(message) > _MESSAGE_MAX else message
    if report is not None:
        run.report = report

    db.commit()
    return True


def get_delivery_run(db: Session, run_id: str) -> Optional[DeliveryCostRun]:
    return db.get(DeliveryCostRun, run_id)


def list_recent_runs(db: Session, account_id: str, limit: int = 20) -> List[DeliveryCostRun]:
    stmt = (
        select(DeliveryCostRun)
        .where(DeliveryCostRun.account_id == account_id)
        .order_by(DeliveryCostRun.created_at.desc(), DeliveryCostRun.id)
        .limit(limit)
    )
    return list(db.execute(stmt).scalars().all())
