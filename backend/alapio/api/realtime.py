# alapio/api/realtime.py

from fastapi import APIRouter, WebSocket

router = APIRouter()


@router.websocket("/ws")
async def realtime_endpoint(websocket: WebSocket):
    await websocket.app.state.gateway.serve(websocket)
