"""Forwarding of notifier subscriptions over WebSockets."""

import asyncio
import logging

from fastapi import WebSocket, WebSocketDisconnect

from joust.engine.notifier import Subscription

logger = logging.getLogger(__name__)


async def stream_subscription(websocket: WebSocket, subscription: Subscription) -> None:
    """Send every snapshot of ``subscription`` until the client disconnects."""
    await websocket.accept()

    async def watch_disconnect() -> None:
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            logger.debug(f"WebSocket on {subscription.collection} disconnected")
        finally:
            subscription.cancel()

    watcher = asyncio.create_task(watch_disconnect())
    try:
        async with subscription:
            async for snapshot in subscription:
                await websocket.send_json(
                    {
                        "type": "snapshot",
                        "version": snapshot.version,
                        "documents": snapshot.documents,
                    }
                )
    except WebSocketDisconnect:
        logger.debug(f"WebSocket on {subscription.collection} closed while sending")
    finally:
        watcher.cancel()
