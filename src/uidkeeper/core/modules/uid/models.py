"""UID whitelist records and the derived active/expired view.

A record stores only an absolute expiry. Status and remaining time are never
persisted; they are derived from ``(expiry, now)`` by :func:`derive_status`,
which is the single place that classification happens.
"""

import math
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from uidkeeper.utils import from_unix

SECONDS_PER_HOUR = 3600
DEFAULT_UID_HOURS = 24


class UidStatus(StrEnum):
    ACTIVE = "active"
    EXPIRED = "expired"


class UidRecord(BaseModel):
    """Stored whitelist entry. At most one exists per ``uid``."""

    uid: str
    expiry: int  # Unix seconds after which the uid is expired


def derive_status(expiry: int, now: int) -> tuple[UidStatus, int]:
    """Classify an expiry against ``now``.

    Returns the status and the remaining whole hours, rounded up; expired
    entries always report 0 hours.
    """
    if expiry > now:
        return UidStatus.ACTIVE, math.ceil((expiry - now) / SECONDS_PER_HOUR)
    return UidStatus.EXPIRED, 0


class UidView(BaseModel):
    """Whitelist entry with status derived at read time (API representation)."""

    uid: str = Field(..., description="Whitelisted identifier")
    expiry: int = Field(..., description="Expiry as Unix seconds")
    status: UidStatus = Field(..., description="Status at the time of the read")
    remaining_hours: int = Field(..., serialization_alias="remainingHours", description="Whole hours left, 0 if expired")
    expiry_date: datetime = Field(..., serialization_alias="expiryDate", description="Expiry as an ISO-8601 UTC timestamp")

    @property
    def is_active(self) -> bool:
        return self.status == UidStatus.ACTIVE

    @classmethod
    def from_record(cls, record: UidRecord, now: int) -> "UidView":
        status, remaining_hours = derive_status(record.expiry, now)
        return cls(
            uid=record.uid,
            expiry=record.expiry,
            status=status,
            remaining_hours=remaining_hours,
            expiry_date=from_unix(record.expiry),
        )


class UidStatistics(BaseModel):
    """Aggregate counts taken from one scan against one instant."""

    total: int = Field(..., ge=0)
    active: int = Field(..., ge=0)
    expired: int = Field(..., ge=0)

    @classmethod
    def from_expiries(cls, expiries: list[int], now: int) -> "UidStatistics":
        active = sum(1 for expiry in expiries if derive_status(expiry, now)[0] == UidStatus.ACTIVE)
        return cls(total=len(expiries), active=active, expired=len(expiries) - active)
