import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request

from controllers.account_controller import AccountController
from controllers.feedback_controller import FeedbackController
from controllers.submission_controller import SubmissionController
from dal.account_store import AccountStore
from dal.record_store import RecordStore
from routes.admin_route import router as admin_router
from routes.chat_route import router as chat_router
from routes.record_route import router as record_router
from services.dataset_archive import DatasetArchive
from services.diagnosis_pipeline import DiagnosisPipeline
from services.diagnosis_queue import DiagnosisQueue
from services.feedback_machine import FeedbackStateMachine
from services.image_fetcher import ImageFetcher
from services.image_store import ImageStore
from services.notifier import OutboxNotifier
from services.openai.analysis_client import AnalysisClient
from services.openai.credential_pool import CredentialPool
from services.openai.failover import RetryPolicy
from utils.config import Settings
from utils.image_cleaner import ImageCleaner

from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file if present

LOGGER = logging.getLogger(__name__)


async def init_state(app: FastAPI, settings: Settings) -> None:
    """Build every component and attach it to `app.state`.

    Raises:
        RuntimeError: If no API credentials are configured.
    """
    try:
        pool = CredentialPool(settings.api_keys)
    except ValueError as exc:
        raise RuntimeError(
            "No OpenAI API keys configured; set OPENAI_API_KEYS or OPENAI_API_KEY_1..n"
        ) from exc

    settings.data_dir.mkdir(parents=True, exist_ok=True)

    record_store = RecordStore(settings.records_path, capacity=settings.record_capacity)
    await record_store.load()
    account_store = AccountStore(settings.accounts_path, free_scans=settings.free_scans)
    await account_store.load()
    quota = account_store if settings.paywall_enabled else None

    notifier = OutboxNotifier(operator_chat_ref=settings.operator_chat_ref)
    image_store = ImageStore(settings.images_dir)
    analysis_client = AnalysisClient(
        model=settings.model,
        language=settings.report_language,
        timeout_seconds=settings.analysis_timeout_seconds,
    )
    fetcher = ImageFetcher(timeout_seconds=settings.download_timeout_seconds, max_bytes=settings.max_image_bytes)
    pipeline = DiagnosisPipeline(
        fetcher=fetcher,
        image_store=image_store,
        analysis_client=analysis_client,
        retry_policy=RetryPolicy(pool, max_rotations=settings.retry_budget),
        record_store=record_store,
        notifier=notifier,
        account_store=quota,
    )
    queue = DiagnosisQueue(pipeline.process, id_generator=record_store.id_generator)
    machine = FeedbackStateMachine(record_store, DatasetArchive(settings.archive_dir, image_store), notifier)

    app.state.settings = settings
    app.state.credential_pool = pool
    app.state.record_store = record_store
    app.state.account_store = account_store
    app.state.notifier = notifier
    app.state.analysis_client = analysis_client
    app.state.image_fetcher = fetcher
    app.state.diagnosis_queue = queue
    app.state.submission_controller = SubmissionController(queue, notifier, quota)
    app.state.feedback_controller = FeedbackController(machine, notifier)
    app.state.account_controller = AccountController(account_store, notifier, settings.admin_token)
    app.state.image_cleaner = ImageCleaner(settings.images_dir, record_store, settings.image_retention_seconds)

    LOGGER.info(
        "Diagnosis service ready: %d credentials, %d records, capacity %d",
        pool.size, len(record_store), record_store.capacity,
    )


async def shutdown_state(app: FastAPI) -> None:
    """Stop the drain loop and close network clients."""
    queue: Optional[DiagnosisQueue] = getattr(app.state, "diagnosis_queue", None)
    if queue is not None:
        await queue.close()
    for name in ("image_fetcher", "analysis_client"):
        client = getattr(app.state, name, None)
        if client is None:
            continue
        try:
            await client.aclose()
        except Exception:
            LOGGER.warning("Failed to close %s cleanly", name, exc_info=True)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application instance.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Lifespan manager to initialize the credential pool, stores, queue and
        controllers, start image housekeeping, and tear them down on exit.
        """
        resolved = settings or Settings.from_env()
        logging.basicConfig(
            level=getattr(logging, resolved.log_level, logging.INFO),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        await init_state(app, resolved)
        cleanup_task = asyncio.create_task(
            app.state.image_cleaner.run_periodic_cleanup(resolved.cleanup_interval_seconds)
        )
        try:
            yield
        finally:
            cleanup_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await cleanup_task
            await shutdown_state(app)

    app = FastAPI(lifespan=lifespan)

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check reporting queue and store state.
        """
        queue = getattr(request.app.state, "diagnosis_queue", None)
        store = getattr(request.app.state, "record_store", None)
        pool = getattr(request.app.state, "credential_pool", None)
        return {
            "ok": queue is not None,
            "queue_depth": queue.depth if queue else 0,
            "draining": queue.is_draining if queue else False,
            "records": len(store) if store is not None else 0,
            "credentials": pool.size if pool else 0,
        }

    # Register application routers
    app.include_router(chat_router)
    app.include_router(record_router)
    app.include_router(admin_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
