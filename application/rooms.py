"""Room Catalog use cases"""
import math
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional
from uuid import UUID

import structlog

from application.cache import ReadThroughCache
from domain.entities import Room, RoomPage
from domain.enums import RoomType, SortBy, SortOrder
from domain.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from domain.repositories import RoomRepository, ReservationRepository
from domain.value_objects import RequestContext, RoomSearchQuery

logger = structlog.get_logger(__name__)

_SORT_FIELDS = {
    SortBy.PRICE: "price_per_night",
    SortBy.POPULARITY: "created_at",
    SortBy.RATING: "rating_average",
    SortBy.CREATED_AT: "created_at",
}


def _encode_rooms(rooms: List[Room]) -> List[dict]:
    return [r.model_dump(mode="json") for r in rooms]


def _decode_rooms(raw: List[dict]) -> List[Room]:
    return [Room.model_validate(r) for r in raw]


def require_admin(ctx: RequestContext, action: str) -> None:
    if not ctx.is_admin:
        logger.warning("forbidden", action=action, user_id=str(ctx.user_id), tenant_id=ctx.tenant_id)
        raise ForbiddenError(f"Only administrators can {action}")


class RoomCatalogService:
    """Service for Room catalog use cases"""

    def __init__(
        self,
        repository: RoomRepository,
        reservation_repo: ReservationRepository,
        cache: ReadThroughCache
    ):
        self.repository = repository
        self.reservation_repo = reservation_repo
        self.cache = cache

    async def create_room(
        self,
        ctx: RequestContext,
        number: str,
        type: RoomType,
        price_per_night: Decimal,
        max_occupancy: int = 1,
        is_available: bool = True,
        amenities: Optional[List[str]] = None,
        description: Optional[str] = None,
        image_url: Optional[str] = None,
        tenant_id: Optional[str] = None
    ) -> Room:
        """Add a room to the catalog"""
        require_admin(ctx, "create rooms")
        tenant = tenant_id or ctx.tenant_id

        if await self.repository.find_by_number(tenant, number):
            raise ConflictError(f"Room number {number} already exists")

        room = Room(
            tenant_id=tenant,
            number=number,
            type=type,
            price_per_night=price_per_night,
            max_occupancy=max_occupancy,
            is_available=is_available,
            amenities=amenities or [],
            description=description,
            image_url=image_url
        )
        await self.repository.save(room)
        logger.info("room_created", room_id=str(room.room_id), number=number, tenant_id=tenant)
        return room

    async def get_room(self, ctx: RequestContext, room_id: UUID) -> Room:
        """Get room by ID (cached)"""
        room = await self.cache.get_or_load(
            self.cache.room_key(room_id),
            self.cache.room_ttl,
            lambda: self.require_room(ctx, room_id),
            lambda r: r.model_dump(mode="json"),
            Room.model_validate
        )
        # room:{id} is shared across tenants
        if not ctx.matches_tenant(room.tenant_id):
            raise NotFoundError(f"Room with ID {room_id} not found")
        return room

    async def require_room(self, ctx: RequestContext, room_id: UUID) -> Room:
        """Get room by ID straight from the repository"""
        room = await self.repository.find_by_id(room_id)
        if not room or not ctx.matches_tenant(room.tenant_id):
            raise NotFoundError(f"Room with ID {room_id} not found")
        return room

    async def list_rooms(self, ctx: RequestContext) -> List[Room]:
        """All bookable rooms of the tenant (cached)"""
        async def load() -> List[Room]:
            rooms = await self.repository.find_all(ctx.tenant_id)
            return [r for r in rooms if r.is_available]

        return await self.cache.get_or_load(
            self.cache.rooms_all_key(ctx.tenant_id),
            self.cache.room_ttl,
            load,
            _encode_rooms,
            _decode_rooms
        )

    async def search_rooms(self, ctx: RequestContext, query: RoomSearchQuery) -> RoomPage:
        """Filtered, sorted, paginated search (cached)"""
        if query.check_in and query.check_out and query.check_out <= query.check_in:
            raise ValidationError("Check-out must be after check-in")

        return await self.cache.get_or_load(
            self.cache.search_key(ctx.tenant_id, query.cache_fragment()),
            self.cache.search_ttl,
            lambda: self._search(ctx, query),
            lambda page: page.model_dump(mode="json"),
            RoomPage.model_validate
        )

    async def _search(self, ctx: RequestContext, query: RoomSearchQuery) -> RoomPage:
        rooms = await self.repository.find_all(ctx.tenant_id)

        # Only bookable rooms unless asked otherwise
        wanted_availability = True if query.is_available is None else query.is_available
        rooms = [r for r in rooms if r.is_available == wanted_availability]

        if query.search:
            rooms = [r for r in rooms if r.matches_text(query.search)]
        if query.type:
            rooms = [r for r in rooms if r.type == query.type]
        if query.min_price is not None:
            rooms = [r for r in rooms if r.price_per_night >= query.min_price]
        if query.max_price is not None:
            rooms = [r for r in rooms if r.price_per_night <= query.max_price]
        if query.min_occupancy is not None:
            rooms = [r for r in rooms if r.max_occupancy >= query.min_occupancy]
        if query.max_occupancy is not None:
            rooms = [r for r in rooms if r.max_occupancy <= query.max_occupancy]
        if query.amenities:
            rooms = [r for r in rooms if r.has_amenities(query.amenities)]

        if query.check_in and query.check_out:
            busy = await self.reservation_repo.find_active_overlapping(query.check_in, query.check_out)
            busy_ids = {r.room_id for r in busy}
            rooms = [r for r in rooms if r.room_id not in busy_ids]

        field = _SORT_FIELDS[query.sort_by]
        rooms.sort(key=lambda r: getattr(r, field), reverse=query.sort_order == SortOrder.DESC)

        total = len(rooms)
        start = (query.page - 1) * query.page_size
        return RoomPage(
            data=rooms[start:start + query.page_size],
            total=total,
            page=query.page,
            page_size=query.page_size,
            total_pages=math.ceil(total / query.page_size)
        )

    async def update_room(self, ctx: RequestContext, room_id: UUID, **changes: Any) -> Room:
        """Patch catalog fields of a room"""
        require_admin(ctx, "update rooms")
        room = await self.require_room(ctx, room_id)

        changes = {k: v for k, v in changes.items() if v is not None}
        new_number = changes.get("number")
        if new_number and new_number != room.number:
            other = await self.repository.find_by_number(room.tenant_id, new_number)
            if other and other.room_id != room.room_id:
                raise ConflictError(f"Room number {new_number} already exists")

        try:
            updated = Room.model_validate({
                **room.model_dump(),
                **changes,
                "updated_at": datetime.utcnow(),
            })
        except ValueError as e:
            raise ValidationError(f"Invalid room data: {e}")

        await self.repository.update(updated)
        await self.cache.invalidate(self.cache.room_key(room_id))
        logger.info("room_updated", room_id=str(room_id), fields=sorted(changes))
        return updated

    async def remove_room(self, ctx: RequestContext, room_id: UUID) -> None:
        """Delete a room that no reservation references"""
        require_admin(ctx, "remove rooms")
        await self.require_room(ctx, room_id)

        if await self.reservation_repo.exists_for_room(room_id):
            raise ConflictError(
                "Room has reservations; mark it unavailable instead of removing it"
            )

        await self.repository.delete(room_id)
        await self.cache.invalidate(self.cache.room_key(room_id))
        logger.info("room_removed", room_id=str(room_id))
