from __future__ import annotations
import time
import logging
from typing import Any, Dict, List, Optional

from celery import shared_task
from sqlalchemy.orm import Session

from repricer.db.session import SessionLocal
from repricer.core.logging import configure_logging, tenant_logger

from repricer.repository.delivery_repo import SqlDeliveryCostRepository
from repricer.repository.delivery_run_repo import (
    create_delivery_run,
    finish_delivery_run,
    mark_delivery_run_running,
)
from repricer.services.delivery.delivery_config import load_delivery_config
from repricer.services.delivery.engine import DeliveryCostEngine


configure_logging()
logger = logging.getLogger(__name__)

_TASK_PREFIX = "repricer.orchestration.delivery_cost.delivery_cost_task"


def _create_run(account_id: str, kind: str, trigger: str, rows_in: int = 0) -> str:
    # 短事务: 先落一条 pending 记录
    db = SessionLocal()
    try:
        return create_delivery_run(db, account_id, kind, trigger, rows_in=rows_in)
    finally:
        db.close()



'''
 触发全量重算 (operator button, API, or after a carrier cost change)
'''
@shared_task(name=f"{_TASK_PREFIX}.kick_delivery_cost_recalc")
def kick_delivery_cost_recalc(account_id: str, trigger: str = "manual"):
    logger.info("========  kick_delivery_cost_recalc start acct=%s trigger=%s  ========", account_id, trigger)
    run_id = _create_run(account_id, "recalculate", trigger)
    result = delivery_cost_run.run(run_id, account_id, "recalculate", None, trigger)
    logger.info("======== kick_delivery_cost_recalc end ========")
    return result


@shared_task(name=f"{_TASK_PREFIX}.kick_delivery_cost_fill")
def kick_delivery_cost_fill(account_id: str, trigger: str = "manual"):
    run_id = _create_run(account_id, "fill_missing", trigger)
    return delivery_cost_run.run(run_id, account_id, "fill_missing", None, trigger)


'''
 导入仓库发货汇总: rows = [{"orderNumber": ..., "parcels": ..., "carrier": ...}, ...]
'''
@shared_task(name=f"{_TASK_PREFIX}.delivery_manifest_import")
def delivery_manifest_import(account_id: str, rows: List[Dict[str, Any]], trigger: str = "upload"):
    logger.info("========  delivery_manifest_import start acct=%s rows=%d  ========", account_id, len(rows or []))
    run_id = _create_run(account_id, "import", trigger, rows_in=len(rows or []))
    result = delivery_cost_run.run(run_id, account_id, "import", rows, trigger)
    logger.info("======== delivery_manifest_import end ========")
    return result



"""
真正执行的任务:
    1) run -> running
    2) engine (recalculate / fill_missing / import_manifest) on a fresh session
    3) run -> completed, counts + report 落库
失败: rollback 当前未提交的部分, run -> failed, 异常继续抛出.
Product batches already committed stay; the next run recomputes the same values.
"""
@shared_task(name=f"{_TASK_PREFIX}.delivery_cost_run", bind=True)
def delivery_cost_run(
    self,
    run_id: str,
    account_id: str,
    kind: str,
    rows: Optional[List[Dict[str, Any]]] = None,
    trigger: str = "manual",
):
    log = tenant_logger(__name__, account_id, run_id)
    db: Session = SessionLocal()
    started = time.perf_counter()

    try:
        mark_delivery_run_running(db, run_id)

        engine = DeliveryCostEngine(SqlDeliveryCostRepository(db), config=load_delivery_config())
        if kind == "recalculate":
            report = engine.recalculate(account_id)
            message = report.message
        elif kind == "fill_missing":
            report = engine.fill_missing(account_id)
            message = report.message
        elif kind == "import":
            report = engine.import_manifest(account_id, rows or [])
            message = report.note
        else:
            raise ValueError(f"unknown delivery cost run kind: {kind}")

        payload = report.to_dict()
        finish_delivery_run(
            db, run_id,
            status="completed",
            products_changed=report.products_changed,
            message=message,
            report=payload,
        )
        log.info("delivery_cost_run %s completed trigger=%s changed=%d elapsed=%.2fs",
                 kind, trigger, report.products_changed, time.perf_counter() - started)
        return {"run_id": run_id, "kind": kind, "products_changed": report.products_changed, "report": payload}

    except Exception as e:
        db.rollback()
        finish_delivery_run(db, run_id, status="failed", message=str(e))
        log.exception("delivery_cost_run %s failed elapsed=%.2fs", kind, time.perf_counter() - started)
        raise
    finally:
        db.close()
