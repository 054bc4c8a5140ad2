# app/core/limiter.py
from datetime import datetime, timedelta
from typing import Dict
from uuid import UUID

from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address

from app.core.config import settings

# Single limiter instance for the entire app
limiter = Limiter(key_func=get_remote_address)

# WebSocket connection attempts: {user_id: {count: int, reset_time: datetime}}
_ws_rate_limits: Dict[UUID, dict] = {}


def check_websocket_rate_limit(user_id: UUID) -> bool:
    """
    Check WebSocket connection rate limit

    Args:
        user_id: User ID opening the connection

    Returns:
        bool: True if within rate limit, False if exceeded
    """
    now = datetime.utcnow()

    # Clean up expired window
    entry = _ws_rate_limits.get(user_id)
    if entry and now > entry["reset_time"]:
        del _ws_rate_limits[user_id]

    if user_id not in _ws_rate_limits:
        _ws_rate_limits[user_id] = {
            "count": 1,
            "reset_time": now + timedelta(seconds=settings.WEBSOCKET_RATE_LIMIT_WINDOW),
        }
        return True

    if _ws_rate_limits[user_id]["count"] >= settings.WEBSOCKET_MAX_CONNECTIONS_PER_USER:
        return False

    _ws_rate_limits[user_id]["count"] += 1
    return True


def reset_websocket_rate_limits():
    _ws_rate_limits.clear()


# Export everything needed
__all__ = [
    "limiter",
    "_rate_limit_exceeded_handler",
    "check_websocket_rate_limit",
    "reset_websocket_rate_limits",
]
