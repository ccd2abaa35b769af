import logging
import os
import sys
from typing import Any, MutableMapping, Optional, Tuple

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DEFAULT_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Make sure the root logger has a handler and the wanted level so INFO lines show up
    in uvicorn, celery workers and one-off scripts alike (uvicorn installs handlers
    before importing us, the other two usually do not).
    """
    resolved_level = (level or DEFAULT_LEVEL).upper()
    root_logger = logging.getLogger()

    if not root_logger.handlers:
        logging.basicConfig(
            level=resolved_level,
            format=LOG_FORMAT,
            handlers=[logging.StreamHandler(sys.stdout)],
        )
    else:
        root_logger.setLevel(resolved_level)

    logging.captureWarnings(True)
    return logging.getLogger("repricer")


class TenantLogAdapter(logging.LoggerAdapter):
    """Prefix every line with the tenant (and run id when known): `[acct=... run=...] msg`."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        extra = self.extra or {}
        parts = [f"acct={extra.get('account_id')}"]
        if extra.get("run_id"):
            parts.append(f"run={extra['run_id']}")
        return f"[{' '.join(parts)}] {msg}", kwargs


def tenant_logger(name: str, account_id: str, run_id: Optional[str] = None) -> TenantLogAdapter:
    return TenantLogAdapter(logging.getLogger(name), {"account_id": account_id, "run_id": run_id})


logger = configure_logging()
