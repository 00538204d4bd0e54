import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

router = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/ws")
async def relay_socket(websocket: WebSocket):
    relay = websocket.app.state.relay
    await websocket.accept()
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.info("Relay connection closed")
                break
            raw = message.get("text")
            if raw is None:
                logger.warning("Dropping binary frame, the relay only speaks JSON text")
                continue
            await relay.dispatch(websocket, raw)
    except WebSocketDisconnect:
        logger.info("Relay connection closed")
    finally:
        await relay.disconnect(websocket)
