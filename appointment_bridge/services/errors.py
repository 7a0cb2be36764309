from __future__ import annotations

from typing import List

from appointment_bridge.schemas.availability import ResourceConflict
from appointment_bridge.schemas.sync import SyncErrorType


class SyncError(RuntimeError):
    """
    Base class for failures raised inside the sync subsystem.

    Public operations catch these and turn them into failed SyncResults;
    `error_type` decides how the failure is classified.
    """

    error_type: SyncErrorType = SyncErrorType.UPSTREAM


class ConfigurationError(SyncError):
    """
    Integration disabled or a required calendar/location is not configured.
    """

    error_type = SyncErrorType.CONFIGURATION


class FieldResolutionError(SyncError):
    """
    None of the accepted aliases for a required field is present in a payload.
    """

    error_type = SyncErrorType.VALIDATION


class AvailabilityConflictError(SyncError):
    """
    The requested interval cannot be booked without double-booking.
    """

    error_type = SyncErrorType.AVAILABILITY_CONFLICT

    def __init__(self, message: str, conflicts: List[ResourceConflict] | None = None) -> None:
        super().__init__(message)
        self.conflicts = list(conflicts or [])


class DataIntegrityError(SyncError):
    """
    A write succeeded upstream but the identifiers needed to record it are missing.
    """

    error_type = SyncErrorType.DATA_INTEGRITY


class SyncRecordNotFoundError(SyncError):
    error_type = SyncErrorType.NOT_FOUND
