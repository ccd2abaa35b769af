"""Integration-style entry point for debugging a recalculation against the configured database."""

import pytest
from sqlalchemy import text

from repricer.db.session import SessionLocal
from repricer.db.model import DeliveryCostRun
from repricer.orchestration.delivery_cost import delivery_cost_task


def _db_ready() -> bool:
    try:
        db = SessionLocal()
        db.execute(text("SELECT 1 FROM delivery_cost_runs LIMIT 1"))
        db.close()
        return True
    except Exception:
        return False


@pytest.mark.integration
def test_kick_delivery_cost_recalc_full_flow():
    if not _db_ready():
        pytest.skip("Database with delivery_cost_runs is not available (run alembic upgrade head)")

    result = delivery_cost_task.kick_delivery_cost_recalc.run("integration-test", trigger="test-debug")
    assert result["kind"] == "recalculate"

    db = SessionLocal()
    try:
        run = db.get(DeliveryCostRun, result["run_id"])
        assert run is not None
        assert run.status == "completed"
    finally:
        db.close()
