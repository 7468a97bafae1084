import uuid

from fastapi import WebSocket


class Connection:
    """A live socket as seen by presence and delivery.

    Frames are JSON objects ``{"type": <event>, "data": <payload>}``.
    """

    def __init__(self, websocket: WebSocket):
        self.id = str(uuid.uuid4())
        self.websocket = websocket

    async def send(self, event: str, data) -> None:
        await self.websocket.send_json({"type": event, "data": data})

    def __repr__(self) -> str:
        return f"<Connection {self.id}>"
