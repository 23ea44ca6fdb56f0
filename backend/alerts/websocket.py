"""
WebSocket endpoint for real-time SLA alert delivery (Redis pub/sub).
"""

import asyncio

import redis.asyncio as aioredis
import structlog
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from api.deps import DEV_TENANT_ID
from core.config import get_settings
from core.security import decode_access_token

settings = get_settings()
logger = structlog.get_logger()
router = APIRouter()

HEARTBEAT_SECONDS = 30


async def authenticate_ws(token: str) -> dict | None:
    """Validate JWT token from WebSocket query param."""
    if settings.debug:
        return {"sub": "dev-user", "tenant_id": DEV_TENANT_ID}
    return decode_access_token(token)


@router.websocket("/ws/alerts")
async def websocket_alerts(websocket: WebSocket, token: str = Query(...)):
    """
    Stream the tenant's alert channel.

    Connect: ws://host/ws/alerts?token=<jwt>

    Messages sent to client:
        {"type": "alert", "payload": {...}}
        {"type": "heartbeat", "payload": {}}
    """
    user = await authenticate_ws(token)
    if user is None or not user.get("tenant_id"):
        await websocket.close(code=4001, reason="Unauthorized")
        return

    await websocket.accept()

    channel = f"alerts:{user['tenant_id']}"
    redis = aioredis.from_url(settings.redis_url)
    pubsub = redis.pubsub()
    await pubsub.subscribe(channel)

    async def listen_redis():
        async for message in pubsub.listen():
            if message["type"] == "message":
                await websocket.send_text(message["data"].decode())

    async def send_heartbeat():
        while True:
            await asyncio.sleep(HEARTBEAT_SECONDS)
            await websocket.send_json({"type": "heartbeat", "payload": {}})

    try:
        await asyncio.gather(listen_redis(), send_heartbeat())
    except (WebSocketDisconnect, RuntimeError) as exc:
        logger.info("ws.alerts_closed", channel=channel, reason=type(exc).__name__)
    finally:
        await pubsub.unsubscribe(channel)
        await pubsub.aclose()
        await redis.aclose()
