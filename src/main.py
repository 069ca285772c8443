import logging
import time

from fastapi import FastAPI
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from starlette.middleware.sessions import SessionMiddleware

from src.api.error_handlers import ExceptionDispatchMiddleware, register_exception_handlers
from src.api.middleware import RequestIdMiddleware
from src.api.routes import admin_routes
from src.api.routes.routes import router
from src.config import settings
from src.config.logging import configure_logging
from src.infrastructure.db.session import engine, get_db_session
from src.infrastructure.db.models import Base
from src.infrastructure.repositories.sequence_repository import SequenceRepository

configure_logging(settings.LOG_LEVEL)

app = FastAPI(title=settings.APP_NAME, debug=settings.APP_DEBUG)

# Last added runs first. Request flow: RequestId -> Session -> ExceptionDispatch -> routes.
app.add_middleware(ExceptionDispatchMiddleware)
app.add_middleware(SessionMiddleware, secret_key=settings.SESSION_SECRET_KEY)
app.add_middleware(RequestIdMiddleware)

register_exception_handlers(app)

# Interactive pages at the root, structured JSON under /api.
app.include_router(router)
app.include_router(router, prefix="/api")
app.include_router(admin_routes.router, prefix="/admin")
app.include_router(admin_routes.router, prefix="/api/admin")

logger = logging.getLogger(__name__)


def _wait_for_database() -> None:
    attempts = settings.DB_CONNECT_MAX_RETRIES
    delay = settings.DB_CONNECT_RETRY_DELAY

    for attempt in range(1, attempts + 1):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except OperationalError:
            if attempt == attempts:
                logger.exception("Database unreachable after %s attempts", attempts)
                raise
            logger.warning(
                "Database not ready (attempt %s/%s), retrying in %.1fs",
                attempt,
                attempts,
                delay,
            )
            time.sleep(delay)
        else:
            logger.info("Database reachable")
            return


@app.on_event("startup")
def on_startup() -> None:
    _wait_for_database()
    Base.metadata.create_all(bind=engine)
    with get_db_session() as db:
        SequenceRepository(db).ensure_sequences()
