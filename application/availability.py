"""Availability queries and the occupancy calendar"""
from datetime import date, datetime, timedelta
from typing import List, Optional, Union
from uuid import UUID

from application.cache import ReadThroughCache
from domain.entities import Room
from domain.enums import BlockType, CalendarStatus, RoomType
from domain.repositories import RoomRepository, ReservationRepository, RoomBlockRepository
from domain.value_objects import CalendarEntry, RequestContext, iter_days, normalize_date


class AvailabilityService:
    """Read-only availability queries; results are cacheable"""

    def __init__(
        self,
        room_repo: RoomRepository,
        reservation_repo: ReservationRepository,
        block_repo: RoomBlockRepository,
        cache: ReadThroughCache
    ):
        self.room_repo = room_repo
        self.reservation_repo = reservation_repo
        self.block_repo = block_repo
        self.cache = cache

    async def check_availability(
        self,
        ctx: RequestContext,
        check_in: Union[date, datetime, str],
        check_out: Union[date, datetime, str],
        room_type: Optional[RoomType] = None,
        use_cache: bool = True
    ) -> List[Room]:
        """Bookable rooms with no active reservation or block overlapping [check_in, check_out)"""
        check_in = normalize_date(check_in)
        check_out = normalize_date(check_out)
        if check_out <= check_in:
            return []

        if not use_cache:
            return await self._free_rooms(ctx, check_in, check_out, room_type)

        return await self.cache.get_or_load(
            self.cache.availability_key(ctx.tenant_id, check_in, check_out, room_type),
            self.cache.availability_ttl,
            lambda: self._free_rooms(ctx, check_in, check_out, room_type),
            lambda rooms: [r.model_dump(mode="json") for r in rooms],
            lambda raw: [Room.model_validate(r) for r in raw]
        )

    async def _free_rooms(
        self,
        ctx: RequestContext,
        check_in: date,
        check_out: date,
        room_type: Optional[RoomType]
    ) -> List[Room]:
        rooms = await self.room_repo.find_all(ctx.tenant_id)
        rooms = [
            r for r in rooms
            if r.is_available and (room_type is None or r.type == room_type)
        ]

        reservations = await self.reservation_repo.find_active_overlapping(check_in, check_out)
        blocks = await self.block_repo.find_active_overlapping(check_in, check_out)
        busy = {r.room_id for r in reservations} | {b.room_id for b in blocks}

        return [r for r in rooms if r.room_id not in busy]

    async def get_availability_calendar(
        self,
        ctx: RequestContext,
        start_date: Union[date, datetime, str],
        end_date: Union[date, datetime, str],
        room_id: Optional[UUID] = None,
        use_cache: bool = True
    ) -> List[CalendarEntry]:
        """One status per room per day of [start_date, end_date], inclusive.

        Priority: reserved > maintenance/blocked > available.

        Cached under the availability TTL. Writes cannot name every calendar
        range that covers them, so a cached calendar is not invalidated and may
        lag bookings and blocks until it expires; pass use_cache=False for a
        fresh read.
        """
        start_date = normalize_date(start_date)
        end_date = normalize_date(end_date)
        if end_date < start_date:
            return []

        if not use_cache:
            return await self._build_calendar(ctx, start_date, end_date, room_id)

        return await self.cache.get_or_load(
            self.cache.calendar_key(ctx.tenant_id, start_date, end_date, room_id),
            self.cache.availability_ttl,
            lambda: self._build_calendar(ctx, start_date, end_date, room_id),
            lambda entries: [e.model_dump(mode="json") for e in entries],
            lambda raw: [CalendarEntry.model_validate(e) for e in raw]
        )

    async def _build_calendar(
        self,
        ctx: RequestContext,
        start_date: date,
        end_date: date,
        room_id: Optional[UUID]
    ) -> List[CalendarEntry]:
        rooms = await self.room_repo.find_all(ctx.tenant_id)
        if room_id is not None:
            rooms = [r for r in rooms if r.room_id == room_id]
        rooms.sort(key=lambda r: r.number)

        window_end = end_date + timedelta(days=1)
        reservations = await self.reservation_repo.find_active_overlapping(start_date, window_end, room_id)
        blocks = await self.block_repo.find_active_overlapping(start_date, window_end, room_id)

        calendar: List[CalendarEntry] = []
        for room in rooms:
            room_reservations = [r for r in reservations if r.room_id == room.room_id]
            room_blocks = [b for b in blocks if b.room_id == room.room_id]

            for day in iter_days(start_date, end_date):
                reservation = next((r for r in room_reservations if r.covers(day)), None)
                block = next((b for b in room_blocks if b.covers(day)), None)

                if reservation:
                    status = CalendarStatus.RESERVED
                elif block:
                    status = (
                        CalendarStatus.MAINTENANCE
                        if block.type == BlockType.MAINTENANCE
                        else CalendarStatus.BLOCKED
                    )
                else:
                    status = CalendarStatus.AVAILABLE

                calendar.append(CalendarEntry(
                    room_id=room.room_id,
                    room_number=room.number,
                    date=day,
                    status=status,
                    reservation_id=reservation.reservation_id if reservation else None
                ))

        return calendar
