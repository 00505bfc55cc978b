import logging
import time

from fastapi import FastAPI
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from src.api.routes.routes import get_backend, get_flow_registry, router
from src.config import STORE_CONNECT_MAX_RETRIES, STORE_CONNECT_RETRY_DELAY
from src.infrastructure.db.session import engine
from src.infrastructure.db.models import Base

app = FastAPI(title="BookNow Checkout Client")

app.include_router(router)
logger = logging.getLogger(__name__)


def _wait_for_store() -> None:
    # The preference store may sit on a network database that starts after the API.
    for attempt in range(1, STORE_CONNECT_MAX_RETRIES + 1):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Preference store is reachable.")
            return
        except OperationalError:
            if attempt == STORE_CONNECT_MAX_RETRIES:
                logger.exception(
                    "Preference store not reachable after %s attempts. Check DATABASE_URL.",
                    STORE_CONNECT_MAX_RETRIES,
                )
                raise
            logger.warning(
                "Preference store not ready (attempt %s/%s). Retrying in %.1f seconds...",
                attempt,
                STORE_CONNECT_MAX_RETRIES,
                STORE_CONNECT_RETRY_DELAY,
            )
            time.sleep(STORE_CONNECT_RETRY_DELAY)


@app.on_event("startup")
def on_startup() -> None:
    _wait_for_store()
    Base.metadata.create_all(bind=engine)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    get_flow_registry().close_all()
    if get_backend.cache_info().currsize:
        await get_backend().aclose()
