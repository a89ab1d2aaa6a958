from celery import Celery
import os

# Celery configuration
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://redis:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://redis:6379/1")
CLEANUP_INTERVAL_SECONDS = float(os.getenv("CLEANUP_INTERVAL_SECONDS", "600"))

celery_app = Celery(
    "pastebox",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
    include=["pastebox.cleanup"],
)

celery_app.conf.beat_schedule = {
    # Every 10 minutes by default, delete pastes past their expiry
    "cleanup-expired-pastes": {
        "task": "pastebox.cleanup.cleanup_expired",
        "schedule": CLEANUP_INTERVAL_SECONDS,
    },
}
