"""HTTP surface: poll trigger, pending jobs, admin config and the bot webhook."""

from typing import Any, Optional

from fastapi import Body, Depends, FastAPI, Header, HTTPException, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .commands import handle_update
from .config import load_config, load_professions, load_sources, save_professions, save_sources
from .env import Settings
from .errors import ConfigError, JobAlertError
from .logger import get_logger
from .notify import Dispatcher, MessageChannel, SubscriberStore, TelegramChannel
from .pipeline import Pipeline
from .publisher import PublishStore
from .sources import build_adapter
from .storage import KeyValueStore

logger = get_logger()


def create_app(
    settings: Optional[Settings] = None,
    kv: Optional[KeyValueStore] = None,
    channel: Optional[MessageChannel] = None,
    adapter_factory=build_adapter,
) -> FastAPI:
    """Build the FastAPI application.

    Collaborators default to the ones described by settings; tests pass
    their own store, channel and adapter factory.
    """
    settings = settings or Settings.from_env()
    kv = kv or KeyValueStore(settings.database_url)
    channel = channel or TelegramChannel(
        settings.telegram_bot_token,
        api_base=settings.telegram_api_base,
        timeout=settings.http_timeout,
    )

    app = FastAPI(
        title="jobalert API",
        description="Job posting discovery and Telegram alerts",
        version=__version__,
    )
    app.state.kv = kv
    app.state.settings = settings

    def build_dispatcher() -> Dispatcher:
        return Dispatcher(
            PublishStore(kv, settings.pending_ttl_seconds),
            SubscriberStore(kv),
            channel,
        )

    if not settings.api_key:
        logger.warning("API_KEY is not set, authenticated endpoints will reject every request")

    def require_api_key(authorization: Optional[str] = Header(default=None)) -> None:
        if not settings.api_key:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
        if not authorization or not authorization.startswith("Bearer "):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
        if authorization[len("Bearer "):] != settings.api_key:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail, "status": exc.status_code},
        )

    @app.post("/search", dependencies=[Depends(require_api_key)])
    def search():
        """Run one poll cycle across all configured sources, then dispatch."""
        try:
            config = load_config(kv)
            pipeline = Pipeline(
                kv,
                retention_seconds=settings.pending_ttl_seconds,
                http_timeout=settings.http_timeout,
                max_workers=settings.max_workers,
                adapter_factory=adapter_factory,
                dispatcher=build_dispatcher(),
            )
            summary = pipeline.run_cycle(config)
        except Exception as e:
            logger.error("Search cycle failed", error_type=type(e).__name__, error=str(e))
            raise HTTPException(status_code=500, detail="Internal Server Error")
        return summary.to_dict()

    @app.get("/new-jobs", dependencies=[Depends(require_api_key)])
    def new_jobs():
        """Jobs whose pending-notification window has not expired."""
        try:
            jobs = PublishStore(kv, settings.pending_ttl_seconds).pending()
        except JobAlertError as e:
            logger.error("Listing pending jobs failed", error=str(e))
            raise HTTPException(status_code=500, detail="Internal Server Error")
        return [job.to_dict() for job in jobs]

    @app.get("/admin/sources", dependencies=[Depends(require_api_key)])
    def get_sources():
        return {"sources": [s.to_dict() for s in load_sources(kv)]}

    @app.put("/admin/sources", dependencies=[Depends(require_api_key)])
    def put_sources(payload: Any = Body(...)):
        try:
            sources = save_sources(kv, payload)
        except ConfigError as e:
            raise HTTPException(status_code=400, detail="; ".join(e.errors) or str(e))
        return {"message": "Sources updated successfully", "count": len(sources)}

    @app.get("/admin/professions", dependencies=[Depends(require_api_key)])
    def get_professions():
        return {"professions": [p.to_dict() for p in load_professions(kv)]}

    @app.put("/admin/professions", dependencies=[Depends(require_api_key)])
    def put_professions(payload: Any = Body(...)):
        try:
            professions = save_professions(kv, payload)
        except ConfigError as e:
            raise HTTPException(status_code=400, detail="; ".join(e.errors) or str(e))
        return {"message": "Professions updated successfully", "count": len(professions)}

    @app.post("/telegram/webhook")
    def telegram_webhook(update: Any = Body(...)):
        """Chat commands. Always 200 so Telegram does not redeliver the update."""
        try:
            handle_update(update, kv, channel, build_dispatcher())
        except JobAlertError as e:
            logger.error("Webhook update failed", error=str(e))
        return {"ok": True}

    return app
