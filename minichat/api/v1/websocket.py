import json
import logging
from typing import Optional
from fastapi import APIRouter, Depends, WebSocket, HTTPException

from minichat.database import AsyncSessionLocal
from minichat.websocket_manager import manager
from minichat.auth import get_current_active_user, get_user_from_token
from minichat.models.user import User

logger = logging.getLogger(__name__)

router = APIRouter()

async def authenticate_socket(token: Optional[str]) -> Optional[User]:
    if not token:
        return None
    async with AsyncSessionLocal() as db:
        try:
            return await get_user_from_token(token, db)
        except HTTPException:
            return None

@router.websocket("/chat")
async def websocket_chat(websocket: WebSocket, token: Optional[str] = None):
    """Real-time channel; the server pushes conversation events, clients may ping."""
    user = await authenticate_socket(token)
    if user is None:
        await websocket.close(code=1008, reason="Invalid token")
        return

    await manager.connect(websocket, user)

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                break
            if frame.get("text") is None:
                await reply(websocket, {"type": "error", "message": "Only text frames are supported"})
                continue
            await handle_client_frame(websocket, frame["text"])
    finally:
        await manager.disconnect(websocket, user)

async def reply(websocket: WebSocket, payload: dict):
    await websocket.send_text(json.dumps(payload))

async def handle_client_frame(websocket: WebSocket, data: str):
    try:
        action = json.loads(data).get("action")
    except (json.JSONDecodeError, AttributeError):
        await reply(websocket, {"type": "error", "message": "Invalid JSON format"})
        return

    if action == "ping":
        await reply(websocket, {"type": "pong"})
    else:
        await reply(websocket, {"type": "error", "message": f"Unknown action: {action}"})

@router.get("/online-users")
async def get_online_users(current_user: User = Depends(get_current_active_user)):
    connected_users = manager.get_connected_users()
    return {"online_users": connected_users, "count": len(connected_users)}
