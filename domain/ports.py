"""Ports - interfaces of collaborators the engine depends on"""
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID

from domain.entities import Reservation
from domain.enums import NotificationEvent
from domain.value_objects import CouponValidation


class CouponResolver(ABC):
    """Validates discount codes against a purchase amount"""

    @abstractmethod
    async def validate(self, code: str, subtotal: Decimal) -> CouponValidation:
        """Return the discount for code; discount never exceeds subtotal"""
        pass

    @abstractmethod
    async def find_coupon_id(self, code: str) -> Optional[UUID]:
        """Resolve a code to the coupon identity"""
        pass

    @abstractmethod
    async def commit_usage(self, coupon_id: UUID) -> None:
        """Count one redemption of the coupon"""
        pass


class NotificationDispatcher(ABC):
    """One-way, fire-and-forget message send.

    Implementations must never raise and never block the caller; there is
    no delivery or ordering guarantee back to the caller.
    """

    @abstractmethod
    def notify(self, event: NotificationEvent, payload: Dict[str, Any]) -> None:
        pass


class ReservationUpdater(ABC):
    """What the payment side needs from the reservation side"""

    @abstractmethod
    async def get_reservation(self, reservation_id: UUID) -> Reservation:
        """Load a reservation regardless of requester (NotFoundError if absent)"""
        pass

    @abstractmethod
    async def confirm_payment(self, reservation_id: UUID) -> Reservation:
        """Move a pending reservation to confirmed"""
        pass


class CacheBackend(ABC):
    """Shared key-value store; each operation is atomic per key"""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int) -> None:
        pass

    @abstractmethod
    async def delete(self, *keys: str) -> None:
        pass
