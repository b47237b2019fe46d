"""Domain Repository Interfaces"""
from abc import ABC, abstractmethod
from typing import Optional, List
from uuid import UUID
from datetime import date

from domain.entities import Room, Reservation, RoomBlock, Payment


class RoomRepository(ABC):
    """Repository interface for Room Aggregate"""

    @abstractmethod
    async def save(self, room: Room) -> Room:
        """Save room"""
        pass

    @abstractmethod
    async def find_by_id(self, room_id: UUID) -> Optional[Room]:
        """Find room by ID"""
        pass

    @abstractmethod
    async def find_by_number(self, tenant_id: Optional[str], number: str) -> Optional[Room]:
        """Find room by number within a tenant"""
        pass

    @abstractmethod
    async def find_all(self, tenant_id: Optional[str] = None) -> List[Room]:
        """Find all rooms, optionally limited to one tenant"""
        pass

    @abstractmethod
    async def update(self, room: Room) -> Room:
        """Update room"""
        pass

    @abstractmethod
    async def delete(self, room_id: UUID) -> bool:
        """Delete room"""
        pass


class ReservationRepository(ABC):
    """Repository interface for Reservation Aggregate"""

    @abstractmethod
    async def save(self, reservation: Reservation) -> Reservation:
        """Insert reservation; rejects an overlap with an active reservation on the same room"""
        pass

    @abstractmethod
    async def find_by_id(self, reservation_id: UUID) -> Optional[Reservation]:
        """Find reservation by ID"""
        pass

    @abstractmethod
    async def find_by_qr_token(self, token: str) -> Optional[Reservation]:
        """Find reservation by check-in token"""
        pass

    @abstractmethod
    async def find_by_user_id(self, user_id: UUID) -> List[Reservation]:
        """Find reservations made by a user"""
        pass

    @abstractmethod
    async def find_active_overlapping(
        self,
        start: date,
        end: date,
        room_id: Optional[UUID] = None
    ) -> List[Reservation]:
        """Find non-cancelled reservations overlapping [start, end)"""
        pass

    @abstractmethod
    async def exists_for_room(self, room_id: UUID) -> bool:
        """Check whether any reservation references the room"""
        pass

    @abstractmethod
    async def find_all(self, tenant_id: Optional[str] = None) -> List[Reservation]:
        """Find all reservations"""
        pass

    @abstractmethod
    async def update(self, reservation: Reservation, expected_version: int) -> Reservation:
        """Update reservation if the stored version still equals expected_version"""
        pass


class RoomBlockRepository(ABC):
    """Repository interface for RoomBlock"""

    @abstractmethod
    async def save(self, block: RoomBlock) -> RoomBlock:
        """Insert block; rejects an overlap with another active block on the same room"""
        pass

    @abstractmethod
    async def find_by_id(self, block_id: UUID) -> Optional[RoomBlock]:
        """Find block by ID"""
        pass

    @abstractmethod
    async def find_active_overlapping(
        self,
        start: date,
        end: date,
        room_id: Optional[UUID] = None,
        exclude_id: Optional[UUID] = None
    ) -> List[RoomBlock]:
        """Find active blocks overlapping [start, end)"""
        pass

    @abstractmethod
    async def find_all(
        self,
        tenant_id: Optional[str] = None,
        room_id: Optional[UUID] = None
    ) -> List[RoomBlock]:
        """Find blocks ordered by start date"""
        pass

    @abstractmethod
    async def update(self, block: RoomBlock) -> RoomBlock:
        """Update block"""
        pass

    @abstractmethod
    async def delete(self, block_id: UUID) -> bool:
        """Delete block"""
        pass


class PaymentRepository(ABC):
    """Repository interface for Payment"""

    @abstractmethod
    async def save(self, payment: Payment) -> Payment:
        """Insert payment; one per reservation"""
        pass

    @abstractmethod
    async def find_by_id(self, payment_id: UUID) -> Optional[Payment]:
        """Find payment by ID"""
        pass

    @abstractmethod
    async def find_by_reservation_id(self, reservation_id: UUID) -> Optional[Payment]:
        """Find the payment of a reservation"""
        pass

    @abstractmethod
    async def find_all(self) -> List[Payment]:
        """Find all payments"""
        pass

    @abstractmethod
    async def update(self, payment: Payment, expected_version: int) -> Payment:
        """Update payment if the stored version still equals expected_version"""
        pass
