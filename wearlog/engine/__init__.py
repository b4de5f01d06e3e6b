"""Wearlog session & attribution reconciliation engine.

Decides, for every hour, which equipment item owns the activity recorded in
that hour.  See ``wearlog.engine.core.WearEngine`` for the public API.
"""

from wearlog.engine.base import (
    ActivityProvider,
    AttributedHour,
    Equipment,
    HourAttribution,
    OwnershipSource,
    RawSample,
    WearSession,
)
from wearlog.engine.core import WearEngine
from wearlog.engine.errors import (
    EquipmentArchived,
    EquipmentNotFound,
    InvalidEquipment,
    InvalidInterval,
    NoActiveSession,
    PersistenceFailure,
    SessionAlreadyActive,
    WearlogError,
)
from wearlog.engine.intervals import Interval, covers, overlaps

__all__ = [
    "ActivityProvider",
    "AttributedHour",
    "Equipment",
    "EquipmentArchived",
    "EquipmentNotFound",
    "HourAttribution",
    "Interval",
    "InvalidEquipment",
    "InvalidInterval",
    "NoActiveSession",
    "OwnershipSource",
    "PersistenceFailure",
    "RawSample",
    "SessionAlreadyActive",
    "WearEngine",
    "WearSession",
    "WearlogError",
    "covers",
    "overlaps",
]
