"""FastAPI application entry point."""
import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator

from fastapi import Depends, FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.websockets import WebSocketState

from .auth import router as auth_router
from .config import get_settings
from .database import create_schema, engine
from .dependencies import get_notifier
from .errors import install_error_handlers
from .notifier import ChangeNotifier
from .routers.leave_requests import router as leave_requests_router
from .routers.notifications import router as notifications_router
from .routers.records import router as records_router
from .routers.users import router as users_router

logger = logging.getLogger(__name__)

settings = get_settings()


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create tables and the notifier that lives for the whole process."""

    await create_schema()
    notifier = ChangeNotifier(queue_size=settings.subscriber_queue_size)
    app.state.notifier = notifier
    logger.info("HRIS backend started")
    try:
        yield
    finally:
        notifier.close()
        await engine.dispose()
        logger.info("HRIS backend stopped")


app = FastAPI(title="HRIS Backend", version="0.1.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
)
install_error_handlers(app)

app.include_router(records_router)
app.include_router(users_router)
app.include_router(auth_router)
app.include_router(leave_requests_router)
app.include_router(notifications_router)
app.mount(
    "/uploads",
    StaticFiles(directory=settings.upload_dir, check_dir=False),
    name="uploads",
)


@app.get("/health", tags=["system"])
async def healthcheck() -> dict[str, str]:
    """Simple readiness probe for uptime checks."""

    return {"status": "ok"}


@app.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    notifier: ChangeNotifier = Depends(get_notifier),
) -> None:
    """Keep a connection registered for change events until it closes."""

    subscriber_id = notifier.register(websocket)
    sender: asyncio.Task | None = None
    try:
        await websocket.accept()
        sender = asyncio.create_task(notifier.serve(subscriber_id))
        while websocket.application_state == WebSocketState.CONNECTED:
            # Inbound text is only keep-alive traffic
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        notifier.unregister(subscriber_id)
        if sender is not None:
            sender.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sender
