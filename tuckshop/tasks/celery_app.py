from celery import Celery

from tuckshop.config import get_settings

settings = get_settings()

celery_app = Celery(
    "tuckshop",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["tuckshop.tasks.stock_tasks"]
)

celery_app.conf.update(
    # Task results are small status dicts
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    result_expires=3600,

    # Stock checks run on their own queue, away from any other workers
    task_default_queue="stock",

    # A low stock check is one short read
    task_time_limit=30,

    # Redeliver a check whose worker died mid-run
    task_acks_late=True,
    task_reject_on_worker_lost=True,
)
