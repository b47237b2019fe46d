"""Read-through cache in front of catalog and availability reads"""
from datetime import date
from typing import Any, Awaitable, Callable, List, Optional, TypeVar
from uuid import UUID

import structlog

from domain.enums import RoomType
from domain.ports import CacheBackend

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _tenant(tenant_id: Optional[str]) -> str:
    return tenant_id or "all"


class ReadThroughCache:
    """Consults the backend first; on a miss loads, stores, then returns.

    Writers invalidate only keys they can name exactly. List, search and
    calendar results are left to expire through their TTL.
    """

    def __init__(
        self,
        backend: CacheBackend,
        room_ttl: int = 300,
        search_ttl: int = 120,
        availability_ttl: int = 60
    ):
        self.backend = backend
        self.room_ttl = room_ttl
        self.search_ttl = search_ttl
        self.availability_ttl = availability_ttl

    async def get_or_load(
        self,
        key: str,
        ttl: int,
        loader: Callable[[], Awaitable[T]],
        encode: Callable[[T], Any],
        decode: Callable[[Any], T]
    ) -> T:
        cached = await self.backend.get(key)
        if cached is not None:
            logger.debug("cache_hit", key=key)
            return decode(cached)

        value = await loader()
        await self.backend.set(key, encode(value), ttl)
        return value

    async def invalidate(self, *keys: str) -> None:
        if keys:
            await self.backend.delete(*keys)
            logger.debug("cache_invalidated", keys=list(keys))

    # ==================== KEYS ====================
    @staticmethod
    def room_key(room_id: UUID) -> str:
        return f"room:{room_id}"

    @staticmethod
    def rooms_all_key(tenant_id: Optional[str]) -> str:
        return f"rooms:all:{_tenant(tenant_id)}"

    @staticmethod
    def search_key(tenant_id: Optional[str], fragment: str) -> str:
        return f"rooms:search:{_tenant(tenant_id)}:{fragment}"

    @staticmethod
    def availability_key(
        tenant_id: Optional[str],
        check_in: date,
        check_out: date,
        room_type: Optional[RoomType] = None
    ) -> str:
        kind = room_type.value if room_type else "all"
        return f"rooms:availability:{_tenant(tenant_id)}:{check_in.isoformat()}:{check_out.isoformat()}:{kind}"

    @staticmethod
    def calendar_key(
        tenant_id: Optional[str],
        start_date: date,
        end_date: date,
        room_id: Optional[UUID] = None
    ) -> str:
        return f"rooms:calendar:{_tenant(tenant_id)}:{start_date.isoformat()}:{end_date.isoformat()}:{room_id or 'all'}"

    def window_keys(
        self,
        tenant_id: Optional[str],
        check_in: date,
        check_out: date,
        room_type: RoomType
    ) -> List[str]:
        """Availability keys a booking/block write on this exact window can name"""
        keys = [
            self.availability_key(tenant_id, check_in, check_out),
            self.availability_key(tenant_id, check_in, check_out, room_type),
        ]
        if tenant_id is not None:
            keys.append(self.availability_key(None, check_in, check_out))
            keys.append(self.availability_key(None, check_in, check_out, room_type))
        return keys
