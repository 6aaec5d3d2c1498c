import asyncio
import os

from celery import Celery
from celery.signals import worker_process_init
from dotenv import load_dotenv

from core import task as _task_registration  # noqa: F401
from core.logging_config import setup_logging
from core.queue.tasks import execute_registered_task

load_dotenv()

broker_url = os.getenv("CELERY_BROKER_URL")
backend_url = os.getenv("CELERY_RESULT_BACKEND")

celery_app = Celery("visa_payments", broker=broker_url, backend=backend_url)
celery_app.conf.update(
    task_track_started=True,
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
)

# Motor binds its client to the first loop it runs on, so every task in a
# worker process shares one loop.
_loop: asyncio.AbstractEventLoop | None = None


def _worker_loop() -> asyncio.AbstractEventLoop:
    global _loop
    if _loop is None or _loop.is_closed():
        _loop = asyncio.new_event_loop()
        asyncio.set_event_loop(_loop)
    return _loop


@worker_process_init.connect
def _init_worker(**_kwargs) -> None:
    setup_logging(os.getenv("LOG_LEVEL", "INFO"))


@celery_app.task(name="celery_worker.run_async_task")
def run_async_task(task_key: str, kwargs: dict):
    return _worker_loop().run_until_complete(execute_registered_task(task_key=task_key, payload=kwargs))
