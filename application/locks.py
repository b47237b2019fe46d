"""Per-room advisory locks"""
import asyncio
from typing import Dict
from uuid import UUID


class RoomLockRegistry:
    """One asyncio.Lock per room.

    Held across "check for conflicts" and "write" so two requests touching
    the same room cannot both pass validation before either persists.
    """

    def __init__(self):
        self._locks: Dict[UUID, asyncio.Lock] = {}

    def lock_for(self, room_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(room_id)
        if lock is None:
            lock = self._locks[room_id] = asyncio.Lock()
        return lock
