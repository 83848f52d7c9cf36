from celery import Celery

from fx_converter.core import settings

app = Celery("fx_converter", broker=settings.CELERY_BROKER_URL)

app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    beat_schedule={
        "warm-exchange-rates": {
            "task": "warm_exchange_rates",
            "schedule": float(settings.WARM_INTERVAL_SECONDS),
        },
    },
)

app.autodiscover_tasks(["fx_converter.application"])
