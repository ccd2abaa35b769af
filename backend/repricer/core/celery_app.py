# Celery 实例 + 队列路由

from celery import Celery
from kombu import Exchange, Queue
from repricer.core.config import settings
from repricer.core.logging import configure_logging

configure_logging()


'''
初始化 Celery 应用/实例
   - delivery cost runs are DB heavy and short, one worker with low concurrency is enough
'''
celery_app = Celery(
    "repricing_hub",
    broker=settings.CELERY_BROKER_URL,          # 队列位置
    backend=settings.CELERY_RESULT_BACKEND,     # 结果存储
    include=[
        "repricer.orchestration.delivery_cost.delivery_cost_task",     # 运费分摊
    ],
)


celery_app.conf.update(
    timezone=settings.CELERY_TIMEZONE,
    enable_utc=True,                             # 内部还是存 UTC
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    task_track_started=True,
    broker_connection_retry_on_startup=True,
    worker_prefetch_multiplier=1,    # 一个 worker 一次只取一个任务
    task_acks_late=True,             # 执行完再确认，worker crash 后任务回队列 (recalculation is idempotent)
    broker_heartbeat=30,
    broker_pool_limit=10,
)


celery_app.conf.task_queues = (
    Queue("default", Exchange("default"), routing_key="default"),
    Queue("delivery", Exchange("delivery"), routing_key="delivery"),     # 运费分摊 / manifest 导入
)


_TASK_PREFIX = "repricer.orchestration.delivery_cost.delivery_cost_task"

celery_app.conf.task_routes = {
    f"{_TASK_PREFIX}.kick_delivery_cost_recalc": {"queue": "delivery"},
    f"{_TASK_PREFIX}.kick_delivery_cost_fill": {"queue": "delivery"},
    f"{_TASK_PREFIX}.delivery_manifest_import": {"queue": "delivery"},
    f"{_TASK_PREFIX}.delivery_cost_run": {"queue": "delivery"},
}
