# shopcart/celery_worker.py
from celery import Celery

from shopcart.utils.settings import (
    CELERY_BROKER_URL,
    CELERY_RESULT_BACKEND,
    CART_CLEANUP_INTERVAL_SECONDS,
)

celery_app = Celery(
    "shopcart",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# taski importowane jawnie, zeby Celery je zarejestrowal
celery_app.conf.imports = (
    "shopcart.tasks.cleanup",
)

celery_app.conf.beat_schedule = {
    "purge-expired-anonymous-carts": {
        "task": "shopcart.tasks.cleanup.purge_expired_anonymous_carts_task",
        "schedule": CART_CLEANUP_INTERVAL_SECONDS,
    },
}

celery_app.conf.timezone = "UTC"
