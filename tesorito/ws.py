# tesorito/ws.py
import json
import logging
from typing import Set

from fastapi import WebSocket
from fastapi.websockets import WebSocketDisconnect

log = logging.getLogger("tesorito.ws")


class ConnectionManager:
    """Schermi cucina collegati a /ws: ricevono order_created / order_updated."""

    def __init__(self) -> None:
        self.clients: Set[WebSocket] = set()

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.clients.add(websocket)
        log.debug("Kitchen screen connected (%d online)", len(self.clients))

    def disconnect(self, websocket: WebSocket):
        self.clients.discard(websocket)

    async def publish(self, event: dict) -> int:
        """Invia l'evento a tutti gli schermi; ritorna quanti l'hanno ricevuto."""
        text = json.dumps(event)
        delivered = 0
        for client in list(self.clients):
            try:
                await client.send_text(text)
            except (WebSocketDisconnect, RuntimeError, OSError) as e:
                log.debug("Dropping kitchen screen: %s", e)
                self.disconnect(client)
                continue
            delivered += 1
        return delivered


manager = ConnectionManager()


async def notify_order(event: str, order) -> None:
    await manager.publish({
        "type": event,
        "order_id": order.id,
        "order_number": order.order_number,
        "status": order.status.value,
    })
