import datetime as dt
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from . import settings
from .engine.decks import DECKS
from .engine.liveness import LivenessMonitor
from .engine.session_engine import SessionEngine
from .engine.ws import Connection

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(
    engine: Optional[SessionEngine] = None,
    *,
    heartbeat_interval: Optional[float] = None,
) -> FastAPI:
    engine = engine or SessionEngine()
    monitor = LivenessMonitor(engine, interval=heartbeat_interval)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        monitor.start()
        logger.info(
            "Estimation server ready on port %s (%s), liveness every %ss",
            settings.PORT,
            settings.APP_ENV,
            monitor.interval,
        )
        try:
            yield
        finally:
            await monitor.stop()
            await engine.broadcaster.close_all()
            logger.info("Estimation server stopped")

    app = FastAPI(title="Estimation Session API", lifespan=lifespan)
    app.add_middleware(CORSMiddleware, **settings.cors_options())
    app.state.engine = engine
    app.state.liveness = monitor

    @app.get("/health")
    async def health(request: Request):
        status = request.app.state.engine.status()
        return {
            "status": "healthy",
            "timestamp": _now_iso(),
            "clients": status.participant_count,
            "state": status.phase.value,
        }

    @app.get("/api/server-info")
    async def server_info(request: Request):
        host = request.headers.get("host") or f"localhost:{settings.PORT}"
        secure = request.headers.get("x-forwarded-proto", request.url.scheme) == "https"
        base_url = f"{'https' if secure else 'http'}://{host}"
        payload: Dict[str, Any] = {
            "port": settings.PORT,
            "environment": settings.APP_ENV,
            "baseUrl": base_url,
            "wsUrl": f"{'wss' if secure else 'ws'}://{host}/ws",
            "timestamp": _now_iso(),
        }
        if not settings.is_production():
            payload["localhost"] = f"http://localhost:{settings.PORT}"
        return payload

    @app.get("/api/decks")
    async def list_decks():
        return {name: list(deck.values) for name, deck in DECKS.items()}

    @app.websocket("/ws")
    async def session_socket(websocket: WebSocket):
        await _serve_socket(websocket.app.state.engine, websocket)

    @app.websocket("/")
    async def root_socket(websocket: WebSocket):
        await _serve_socket(websocket.app.state.engine, websocket)

    return app


async def _serve_socket(engine: SessionEngine, websocket: WebSocket) -> None:
    await websocket.accept()
    client = websocket.client
    connection = Connection(websocket)
    connection.start()
    logger.info("WebSocket %s accepted from %s", connection.id, client.host if client else "unknown")
    await engine.connect(connection)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.info("WebSocket %s closed (code %s)", connection.id, message.get("code"))
                break
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes")
            if raw is None:
                continue
            await engine.handle_raw(connection, raw)
    except WebSocketDisconnect as exc:
        logger.info("WebSocket %s disconnected (code %s)", connection.id, exc.code)
    except RuntimeError as exc:
        # Raised by Starlette when the socket was closed from our side.
        logger.debug("WebSocket %s receive stopped: %s", connection.id, exc)
    finally:
        await engine.disconnect(connection)
        await connection.detach()


def _now_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.PORT, log_level=settings.LOG_LEVEL.lower())
