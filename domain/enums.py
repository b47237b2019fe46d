"""Domain Enums"""
from enum import Enum


class RoomType(str, Enum):
    SINGLE = "single"
    DOUBLE = "double"
    SUITE = "suite"
    DELUXE = "deluxe"


class ReservationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class BlockType(str, Enum):
    MAINTENANCE = "maintenance"
    EVENT = "event"
    OTHER = "other"


class CalendarStatus(str, Enum):
    AVAILABLE = "available"
    RESERVED = "reserved"
    MAINTENANCE = "maintenance"
    BLOCKED = "blocked"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class UserRole(str, Enum):
    ADMIN = "admin"
    GUEST = "guest"


class CouponType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class SortBy(str, Enum):
    PRICE = "price"
    POPULARITY = "popularity"
    RATING = "rating"
    CREATED_AT = "createdAt"


class SortOrder(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


class NotificationEvent(str, Enum):
    RESERVATION_CREATED = "reservation.created"
    RESERVATION_STATUS_CHANGED = "reservation.status_changed"
    RESERVATION_CANCELLED = "reservation.cancelled"
    RESERVATION_CONFIRMED = "reservation.confirmed"
    GUEST_CHECKED_IN = "reservation.checked_in"
    GUEST_CHECKED_OUT = "reservation.checked_out"
