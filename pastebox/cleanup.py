from pastebox import celery_app
from pastebox.config import Settings
from pastebox.logger import logger
from pastebox.runtime import Runtime
from pastebox.services.paste_service import PasteService


def sweep_all(pastes: PasteService, batch_size: int) -> int:
    # Delete in batches; a short batch means nothing is left, or the stores are failing and the next run retries
    total_deleted = 0
    while True:
        deleted = pastes.sweep_expired(batch_size)
        total_deleted += deleted
        if deleted < batch_size:
            break
    return total_deleted


@celery_app.task(name="pastebox.cleanup.cleanup_expired")
def cleanup_expired():
    settings = Settings.from_env()
    with Runtime.from_settings(settings) as runtime:
        total_deleted = sweep_all(runtime.pastes, settings.cleanup_batch_size)
    logger.info("Cleanup run deleted %d expired pastes", total_deleted)
    return {"deleted": total_deleted}
