"""Room Block use cases"""
from datetime import date, datetime
from typing import List, Optional, Tuple, Union
from uuid import UUID

import structlog

from application.cache import ReadThroughCache
from application.locks import RoomLockRegistry
from application.rooms import RoomCatalogService, require_admin
from domain.entities import RoomBlock
from domain.enums import BlockType
from domain.exceptions import ConflictError, NotFoundError, ValidationError
from domain.repositories import RoomBlockRepository, ReservationRepository
from domain.value_objects import RequestContext, normalize_date

logger = structlog.get_logger(__name__)


class RoomBlockService:
    """Service for maintenance/event blocks on rooms"""

    def __init__(
        self,
        repository: RoomBlockRepository,
        reservation_repo: ReservationRepository,
        catalog: RoomCatalogService,
        locks: RoomLockRegistry,
        cache: ReadThroughCache
    ):
        self.repository = repository
        self.reservation_repo = reservation_repo
        self.catalog = catalog
        self.locks = locks
        self.cache = cache

    async def create_block(
        self,
        ctx: RequestContext,
        room_id: UUID,
        start_date: Union[date, datetime, str],
        end_date: Union[date, datetime, str],
        type: BlockType = BlockType.MAINTENANCE,
        reason: Optional[str] = None,
        tenant_id: Optional[str] = None
    ) -> RoomBlock:
        """Withhold a room for [start_date, end_date)"""
        require_admin(ctx, "block rooms")
        room = await self.catalog.require_room(ctx, room_id)

        start = normalize_date(start_date)
        end = normalize_date(end_date)
        if start >= end:
            raise ValidationError("Start date must be before end date")
        if start < date.today():
            raise ValidationError("Start date cannot be in the past")

        block = RoomBlock(
            tenant_id=tenant_id or ctx.tenant_id or room.tenant_id,
            room_id=room_id,
            start_date=start,
            end_date=end,
            type=type,
            reason=reason
        )

        async with self.locks.lock_for(room_id):
            await self._ensure_no_conflicts(block)
            await self.repository.save(block)

        await self.cache.invalidate(*self.cache.window_keys(block.tenant_id, start, end, room.type))
        logger.info(
            "room_block_created",
            block_id=str(block.block_id),
            room_id=str(room_id),
            start_date=start.isoformat(),
            end_date=end.isoformat(),
            block_type=type.value,
        )
        return block

    async def find_all(self, ctx: RequestContext, room_id: Optional[UUID] = None) -> List[RoomBlock]:
        """Blocks of the tenant, ordered by start date"""
        return await self.repository.find_all(ctx.tenant_id, room_id)

    async def find_one(self, ctx: RequestContext, block_id: UUID) -> RoomBlock:
        block = await self.repository.find_by_id(block_id)
        if not block or not ctx.matches_tenant(block.tenant_id):
            raise NotFoundError("Block not found")
        return block

    async def update_block(
        self,
        ctx: RequestContext,
        block_id: UUID,
        start_date: Optional[Union[date, datetime, str]] = None,
        end_date: Optional[Union[date, datetime, str]] = None,
        type: Optional[BlockType] = None,
        reason: Optional[str] = None,
        is_active: Optional[bool] = None
    ) -> RoomBlock:
        """Patch a block; date changes and re-activation re-run the conflict checks"""
        require_admin(ctx, "update room blocks")
        block = await self.find_one(ctx, block_id)

        old_start, old_end = block.start_date, block.end_date
        dates_changed = start_date is not None or end_date is not None
        reactivated = is_active is True and not block.is_active

        if dates_changed:
            block.reschedule(
                normalize_date(start_date) if start_date is not None else block.start_date,
                normalize_date(end_date) if end_date is not None else block.end_date
            )
        if type is not None:
            block.type = type
        if reason is not None:
            block.reason = reason
        if is_active is not None:
            block.is_active = is_active
        block.updated_at = datetime.utcnow()

        async with self.locks.lock_for(block.room_id):
            if (dates_changed or reactivated) and block.is_active:
                await self._ensure_no_conflicts(block)
            await self.repository.update(block)

        await self._release_windows(ctx, block, (old_start, old_end), (block.start_date, block.end_date))
        logger.info("room_block_updated", block_id=str(block_id))
        return block

    async def remove_block(self, ctx: RequestContext, block_id: UUID) -> None:
        """Hard delete; reservations are untouched"""
        require_admin(ctx, "remove room blocks")
        block = await self.find_one(ctx, block_id)
        await self.repository.delete(block.block_id)
        await self._release_windows(ctx, block, (block.start_date, block.end_date))
        logger.info("room_block_removed", block_id=str(block_id))

    async def _release_windows(self, ctx: RequestContext, block: RoomBlock, *windows: Tuple[date, date]) -> None:
        """Drop the availability keys of every window the block covered or now covers"""
        room = await self.catalog.repository.find_by_id(block.room_id)
        if room is None:
            return
        tenant = block.tenant_id or ctx.tenant_id
        keys: List[str] = []
        for start, end in dict.fromkeys(windows):
            keys.extend(self.cache.window_keys(tenant, start, end, room.type))
        await self.cache.invalidate(*keys)

    async def _ensure_no_conflicts(self, block: RoomBlock) -> None:
        reservations = await self.reservation_repo.find_active_overlapping(
            block.start_date, block.end_date, block.room_id
        )
        if reservations:
            raise ConflictError(
                "Cannot block the room: there are reservations in this period"
            )

        blocks = await self.repository.find_active_overlapping(
            block.start_date, block.end_date, block.room_id, exclude_id=block.block_id
        )
        if blocks:
            raise ConflictError("An active block already exists in this period")
