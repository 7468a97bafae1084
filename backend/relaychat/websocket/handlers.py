import json
import logging

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from relaychat.config import settings
from relaychat.errors import AuthError
from relaychat.services.auth import username_from_token
from relaychat.websocket.connection import Connection
from relaychat.websocket.gateway import Session
from relaychat.websocket.presence import PresenceTracker
from relaychat.websocket.router import DeliveryRouter

logger = logging.getLogger(__name__)


def init_realtime(app: FastAPI, on_offline=None) -> None:
    """Attach a fresh presence tracker and delivery router to ``app.state``."""
    presence = PresenceTracker(on_offline=on_offline)
    app.state.presence = presence
    app.state.router = DeliveryRouter(presence, policy=settings.fanout_policy)


def _split_frame(frame) -> tuple[str | None, object]:
    if not isinstance(frame, dict):
        return None, None
    if "data" in frame:
        return frame.get("type"), frame["data"]
    # Flat frames: every key except "type" is payload
    return frame.get("type"), {k: v for k, v in frame.items() if k != "type"}


async def websocket_endpoint(websocket: WebSocket):
    token_username = None
    token = websocket.query_params.get("token")
    if token:
        try:
            token_username = username_from_token(token)
        except AuthError:
            await websocket.close(code=4001, reason="Unauthorized")
            return

    await websocket.accept()
    connection = Connection(websocket)
    session = Session(
        connection,
        websocket.app.state.presence,
        websocket.app.state.router,
        token_username=token_username,
        enforce_ownership=settings.enforce_message_ownership,
    )
    logger.info("%s opened", connection)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = json.loads(raw)
            except ValueError:
                await connection.send("error", {"event": None, "error": "Malformed frame"})
                continue
            event, data = _split_frame(frame)
            await session.handle(event, data)
    except WebSocketDisconnect:
        pass
    finally:
        await session.close()
