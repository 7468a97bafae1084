import logging
import os
from contextlib import asynccontextmanager
from functools import partial

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException

from relaychat.api import auth, files, messages, users
from relaychat.config import settings
from relaychat.database import async_session, engine
from relaychat.errors import RelayError, StoreError
from relaychat.models.base import Base
from relaychat.services.auth import record_last_seen
from relaychat.services.message_store import init_message_db
from relaychat.websocket.handlers import init_realtime, websocket_endpoint

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.getLogger("relaychat").setLevel(settings.log_level.upper())
    # Startup failures propagate and abort the process
    os.makedirs(settings.upload_dir, exist_ok=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await init_message_db()
    init_realtime(app, on_offline=partial(record_last_seen, async_session))
    logger.info("RelayChat started (fan-out policy: %s)", settings.fanout_policy)
    yield
    await engine.dispose()


app = FastAPI(
    title="RelayChat",
    description="Direct messaging relay with presence and delivery status",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RelayError)
async def relay_error_handler(request: Request, exc: RelayError):
    if isinstance(exc, StoreError):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.public_message})
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    fields = sorted({str(err["loc"][-1]) for err in exc.errors() if err.get("loc")})
    message = f"Missing or invalid field(s): {', '.join(fields)}" if fields else "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


# REST API routes
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(messages.router)
app.include_router(files.router)

# WebSocket
app.websocket("/ws")(websocket_endpoint)

# Uploaded blobs
app.mount(
    settings.upload_url_prefix,
    StaticFiles(directory=settings.upload_dir, check_dir=False),
    name="uploads",
)


@app.get("/api/health")
async def health(request: Request):
    presence = getattr(request.app.state, "presence", None)
    return {
        "status": "ok",
        "service": "relaychat",
        "online": len(presence.online_usernames()) if presence else 0,
    }
