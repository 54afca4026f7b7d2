"""WebSocket connection manager for real-time wallet updates."""
import logging
from collections import defaultdict

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manages WebSocket connections per user."""

    def __init__(self):
        # user_id -> list of WebSocket connections (user can have multiple tabs/devices)
        self.active_connections: dict[int, list[WebSocket]] = defaultdict(list)

    async def connect(self, websocket: WebSocket, user_id: int):
        """Accept and register a new connection."""
        await websocket.accept()
        self.active_connections[user_id].append(websocket)
        logger.info(f'User {user_id} connected. Total connections: {len(self.active_connections[user_id])}')

    def disconnect(self, websocket: WebSocket, user_id: int):
        """Remove a connection."""
        if websocket in self.active_connections[user_id]:
            self.active_connections[user_id].remove(websocket)
        if not self.active_connections[user_id]:
            del self.active_connections[user_id]
        logger.info(f'User {user_id} disconnected. Remaining: {len(self.active_connections.get(user_id, []))}')

    async def send_to_user(self, user_id: int, message: dict) -> int:
        """Send a message to all connections of a user. Returns how many received it."""
        if user_id not in self.active_connections:
            logger.debug(f'User {user_id} has no active connections')
            return 0

        delivered = 0
        dead_connections = []
        for connection in self.active_connections[user_id]:
            try:
                await connection.send_json(message)
                delivered += 1
            except Exception as e:
                logger.warning(f'Failed to send to user {user_id}: {e}')
                dead_connections.append(connection)
        # Clean up dead connections
        for conn in dead_connections:
            self.disconnect(conn, user_id)
        return delivered


# Singleton instance
manager = ConnectionManager()
