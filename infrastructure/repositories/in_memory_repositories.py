"""In-Memory Repository Implementations

Stored entities are copied on the way in and out so callers never mutate
persisted state without going through update().
"""
from typing import Optional, List, Dict
from uuid import UUID
from datetime import date

from domain.repositories import (
    RoomRepository, ReservationRepository, RoomBlockRepository, PaymentRepository
)
from domain.entities import Room, Reservation, RoomBlock, Payment
from domain.exceptions import ConflictError, NotFoundError


class InMemoryRoomRepository(RoomRepository):
    """In-memory implementation of RoomRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Room] = {}

    async def save(self, room: Room) -> Room:
        """Save room to memory"""
        self._storage[room.room_id] = room.model_copy(deep=True)
        return room

    async def find_by_id(self, room_id: UUID) -> Optional[Room]:
        """Find room by ID"""
        room = self._storage.get(room_id)
        return room.model_copy(deep=True) if room else None

    async def find_by_number(self, tenant_id: Optional[str], number: str) -> Optional[Room]:
        """Find room by number within a tenant"""
        for room in self._storage.values():
            if room.tenant_id == tenant_id and room.number == number:
                return room.model_copy(deep=True)
        return None

    async def find_all(self, tenant_id: Optional[str] = None) -> List[Room]:
        """Find all rooms"""
        return [
            r.model_copy(deep=True) for r in self._storage.values()
            if tenant_id is None or r.tenant_id == tenant_id
        ]

    async def update(self, room: Room) -> Room:
        """Update room"""
        if room.room_id in self._storage:
            self._storage[room.room_id] = room.model_copy(deep=True)
            return room
        raise NotFoundError("Room not found")

    async def delete(self, room_id: UUID) -> bool:
        """Delete room"""
        if room_id in self._storage:
            del self._storage[room_id]
            return True
        return False


class InMemoryReservationRepository(ReservationRepository):
    """In-memory implementation of ReservationRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Reservation] = {}

    async def save(self, reservation: Reservation) -> Reservation:
        """Insert reservation, refusing to double-book its room"""
        for existing in self._storage.values():
            if (
                existing.room_id == reservation.room_id
                and existing.reservation_id != reservation.reservation_id
                and existing.overlaps(reservation.check_in_date, reservation.check_out_date)
            ):
                raise ConflictError("Room is not available for these dates")
        self._storage[reservation.reservation_id] = reservation.model_copy(deep=True)
        return reservation

    async def find_by_id(self, reservation_id: UUID) -> Optional[Reservation]:
        """Find reservation by ID"""
        reservation = self._storage.get(reservation_id)
        return reservation.model_copy(deep=True) if reservation else None

    async def find_by_qr_token(self, token: str) -> Optional[Reservation]:
        """Find reservation by check-in token"""
        for reservation in self._storage.values():
            if reservation.qr_token and reservation.qr_token == token:
                return reservation.model_copy(deep=True)
        return None

    async def find_by_user_id(self, user_id: UUID) -> List[Reservation]:
        """Find reservations by user ID"""
        return [r.model_copy(deep=True) for r in self._storage.values() if r.user_id == user_id]

    async def find_active_overlapping(
        self,
        start: date,
        end: date,
        room_id: Optional[UUID] = None
    ) -> List[Reservation]:
        """Find non-cancelled reservations overlapping [start, end)"""
        return [
            r.model_copy(deep=True) for r in self._storage.values()
            if (room_id is None or r.room_id == room_id) and r.overlaps(start, end)
        ]

    async def exists_for_room(self, room_id: UUID) -> bool:
        return any(r.room_id == room_id for r in self._storage.values())

    async def find_all(self, tenant_id: Optional[str] = None) -> List[Reservation]:
        """Find all reservations"""
        return [
            r.model_copy(deep=True) for r in self._storage.values()
            if tenant_id is None or r.tenant_id == tenant_id
        ]

    async def update(self, reservation: Reservation, expected_version: int) -> Reservation:
        """Update reservation with an optimistic version check"""
        stored = self._storage.get(reservation.reservation_id)
        if stored is None:
            raise NotFoundError("Reservation not found")
        if stored.version != expected_version:
            raise ConflictError("Reservation was modified concurrently, retry the operation")
        self._storage[reservation.reservation_id] = reservation.model_copy(deep=True)
        return reservation


class InMemoryRoomBlockRepository(RoomBlockRepository):
    """In-memory implementation of RoomBlockRepository"""

    def __init__(self):
        self._storage: Dict[UUID, RoomBlock] = {}

    def _overlapping(self, block: RoomBlock) -> bool:
        return block.is_active and any(
            other.room_id == block.room_id
            and other.block_id != block.block_id
            and other.overlaps(block.start_date, block.end_date)
            for other in self._storage.values()
        )

    async def save(self, block: RoomBlock) -> RoomBlock:
        """Insert block, refusing overlapping active blocks on one room"""
        if self._overlapping(block):
            raise ConflictError("An active block already exists in this period")
        self._storage[block.block_id] = block.model_copy(deep=True)
        return block

    async def find_by_id(self, block_id: UUID) -> Optional[RoomBlock]:
        """Find block by ID"""
        block = self._storage.get(block_id)
        return block.model_copy(deep=True) if block else None

    async def find_active_overlapping(
        self,
        start: date,
        end: date,
        room_id: Optional[UUID] = None,
        exclude_id: Optional[UUID] = None
    ) -> List[RoomBlock]:
        """Find active blocks overlapping [start, end)"""
        return [
            b.model_copy(deep=True) for b in self._storage.values()
            if (room_id is None or b.room_id == room_id)
            and b.block_id != exclude_id
            and b.overlaps(start, end)
        ]

    async def find_all(
        self,
        tenant_id: Optional[str] = None,
        room_id: Optional[UUID] = None
    ) -> List[RoomBlock]:
        """Find blocks ordered by start date"""
        blocks = [
            b.model_copy(deep=True) for b in self._storage.values()
            if (tenant_id is None or b.tenant_id == tenant_id)
            and (room_id is None or b.room_id == room_id)
        ]
        return sorted(blocks, key=lambda b: b.start_date)

    async def update(self, block: RoomBlock) -> RoomBlock:
        """Update block"""
        if block.block_id not in self._storage:
            raise NotFoundError("Block not found")
        if self._overlapping(block):
            raise ConflictError("Another active block already exists in this period")
        self._storage[block.block_id] = block.model_copy(deep=True)
        return block

    async def delete(self, block_id: UUID) -> bool:
        """Delete block"""
        if block_id in self._storage:
            del self._storage[block_id]
            return True
        return False


class InMemoryPaymentRepository(PaymentRepository):
    """In-memory implementation of PaymentRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Payment] = {}

    async def save(self, payment: Payment) -> Payment:
        """Insert payment, one per reservation"""
        for existing in self._storage.values():
            if existing.reservation_id == payment.reservation_id and existing.payment_id != payment.payment_id:
                raise ConflictError("Payment already exists for this reservation")
        self._storage[payment.payment_id] = payment.model_copy(deep=True)
        return payment

    async def find_by_id(self, payment_id: UUID) -> Optional[Payment]:
        """Find payment by ID"""
        payment = self._storage.get(payment_id)
        return payment.model_copy(deep=True) if payment else None

    async def find_by_reservation_id(self, reservation_id: UUID) -> Optional[Payment]:
        """Find the payment of a reservation"""
        for payment in self._storage.values():
            if payment.reservation_id == reservation_id:
                return payment.model_copy(deep=True)
        return None

    async def find_all(self) -> List[Payment]:
        """Find all payments"""
        return [p.model_copy(deep=True) for p in self._storage.values()]

    async def update(self, payment: Payment, expected_version: int) -> Payment:
        """Update payment with an optimistic version check"""
        stored = self._storage.get(payment.payment_id)
        if stored is None:
            raise NotFoundError("Payment not found")
        if stored.version != expected_version:
            raise ConflictError("Payment was modified concurrently, retry the operation")
        self._storage[payment.payment_id] = payment.model_copy(deep=True)
        return payment
