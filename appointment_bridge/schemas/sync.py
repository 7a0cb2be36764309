from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, Field

from appointment_bridge.schemas.availability import ResourceConflict


class SyncDirection(str, Enum):
    SOURCE_TO_TARGET = "source_to_target"
    TARGET_TO_SOURCE = "target_to_source"
    BIDIRECTIONAL = "bidirectional"


class ConflictStrategy(str, Enum):
    SOURCE_WINS = "source_wins"
    TARGET_WINS = "target_wins"
    MOST_RECENT_WINS = "most_recent_wins"


class SyncAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    DELETED = "deleted"


class SyncErrorType(str, Enum):
    """
    Failure taxonomy carried on every failed SyncResult.
    """

    CONFIGURATION = "configuration"
    UPSTREAM = "upstream"
    AVAILABILITY_CONFLICT = "availability_conflict"
    DATA_INTEGRITY = "data_integrity"
    VALIDATION = "validation"
    TIMEOUT = "timeout"
    NOT_FOUND = "not_found"


class Platform(str, Enum):
    SOURCE = "source"
    TARGET = "target"


# --------------------------------------------------------------------------
# Link state of a SyncRecord
# --------------------------------------------------------------------------

@dataclass(frozen=True)
class Unlinked:
    pass


@dataclass(frozen=True)
class LinkedSourceOnly:
    source_id: str


@dataclass(frozen=True)
class LinkedTargetOnly:
    target_id: str


@dataclass(frozen=True)
class LinkedBoth:
    source_id: str
    target_id: str


SyncLink = Union[Unlinked, LinkedSourceOnly, LinkedTargetOnly, LinkedBoth]


def link_from_ids(source_id: str | None, target_id: str | None) -> SyncLink:
    if source_id and target_id:
        return LinkedBoth(source_id=source_id, target_id=target_id)
    if source_id:
        return LinkedSourceOnly(source_id=source_id)
    if target_id:
        return LinkedTargetOnly(target_id=target_id)
    return Unlinked()


# --------------------------------------------------------------------------
# Results
# --------------------------------------------------------------------------

class SyncResult(BaseModel):
    """
    Outcome of one push or conflict resolution.

    Public sync operations never raise; every failure ends up here with a
    descriptive `error` and an `error_type`.
    """

    success: bool
    source_appointment_id: str | None = None
    target_appointment_id: str | None = None
    action: SyncAction | None = None
    error: str | None = None
    error_type: SyncErrorType | None = None
    conflicts: list[ResourceConflict] | None = Field(
        default=None,
        description="Conflicting bookings when the push was refused for availability.",
    )

    @classmethod
    def failure(
        cls,
        error: str,
        error_type: SyncErrorType,
        **extra: Any,
    ) -> "SyncResult":
        return cls(success=False, error=error, error_type=error_type, **extra)


class ReconciliationSummary(BaseModel):
    """
    Aggregate of a full reconciliation pass for one tenant.
    """

    tenant_id: str
    synced: int = 0
    errors: int = 0
    results: list[SyncResult] = Field(default_factory=list)
    message: str | None = None

    def add(self, result: SyncResult) -> None:
        self.results.append(result)
        if result.success:
            self.synced += 1
        else:
            self.errors += 1


# --------------------------------------------------------------------------
# Request bodies
# --------------------------------------------------------------------------

class SourceToTargetRequest(BaseModel):
    appointment_id: str = Field(..., description="Source appointment id to push.")


class TargetToSourceRequest(BaseModel):
    appointment: dict[str, Any] = Field(..., description="Raw Target appointment payload.")


class ResolveConflictRequest(BaseModel):
    source_appointment: dict[str, Any]
    target_appointment: dict[str, Any]
    strategy: ConflictStrategy | None = Field(
        default=None,
        description="Strategy to apply; defaults to the one recorded on the sync record.",
    )


class WebhookEvent(BaseModel):
    """
    Minimal webhook envelope accepted from either platform.
    """

    type: str = Field("appointment.updated", examples=["appointment.created"])
    appointment: dict[str, Any] = Field(default_factory=dict)
