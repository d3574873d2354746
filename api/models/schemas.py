"""Pydantic data models shared by the ledger core and the FastAPI layer.

Records are serialized with camelCase aliases so the persisted JSON document
and the HTTP payloads use the same field names
(``inputDeadline``, ``startedAt`` ...). Python code uses the snake_case names.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import (
    AliasChoices,
    AwareDatetime,
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeInt,
    PositiveInt,
    model_validator,
)
from pydantic.alias_generators import to_camel

DOCUMENT_VERSION = 1
DEFAULT_EXPIRY_THRESHOLDS = (1440, 180, 60, 30)
DEFAULT_INPUT_DEADLINE_THRESHOLDS: tuple = ()
PROMO_CODE_PATTERN = r"^[A-Za-z0-9]+$"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LedgerModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CodeStatus(str, Enum):
    """Lifecycle states derived from a record and a reference instant."""

    UNUSED = "unused"
    ACTIVE = "active"
    CONSUMED = "consumed"
    EXPIRED = "expired"


class NotificationType(str, Enum):
    EXPIRY = "expiry"
    INPUT_DEADLINE = "inputDeadline"


class CodeRecord(LedgerModel):
    """A stored promo code. Instances are immutable snapshots."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    order: PositiveInt
    code: str = Field(..., min_length=1, pattern=PROMO_CODE_PATTERN)
    input_deadline: AwareDatetime
    validity_duration_minutes: PositiveInt
    started_at: Optional[AwareDatetime] = None
    expires_at: Optional[AwareDatetime] = None
    created_at: AwareDatetime = Field(default_factory=utcnow)
    updated_at: AwareDatetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _check_activation_pair(self) -> "CodeRecord":
        if (self.started_at is None) != (self.expires_at is None):
            raise ValueError("startedAt and expiresAt must both be set or both be null")
        return self


class CodeWithStatus(CodeRecord):
    """Record view carrying the status computed at a given instant."""

    status: CodeStatus


class CreateCodeInput(LedgerModel):
    order: Optional[PositiveInt] = Field(
        default=None, description="Display rank; the next free rank is used when omitted"
    )
    code: str = Field(..., min_length=1, pattern=PROMO_CODE_PATTERN)
    input_deadline: AwareDatetime
    validity_duration_minutes: PositiveInt


class UpdateCodeInput(LedgerModel):
    """Partial update. ``startedAt: null`` cancels an activation."""

    order: Optional[PositiveInt] = None
    code: Optional[str] = Field(default=None, min_length=1, pattern=PROMO_CODE_PATTERN)
    input_deadline: Optional[AwareDatetime] = None
    validity_duration_minutes: Optional[PositiveInt] = None
    started_at: Optional[AwareDatetime] = None


class CreateCodesRequest(LedgerModel):
    inputs: List[CreateCodeInput]


class OrderUpdate(LedgerModel):
    id: str
    order: PositiveInt


class UpdateOrdersRequest(LedgerModel):
    orders: List[OrderUpdate]


class StartCodeRequest(LedgerModel):
    started_at: Optional[AwareDatetime] = Field(
        default=None, description="Activation instant; defaults to the current time"
    )


class EditStartedAtRequest(LedgerModel):
    new_started_at: AwareDatetime


class NotificationSettings(LedgerModel):
    """Minute offsets before expiry / input deadline at which reminders fire."""

    expiry_thresholds: List[NonNegativeInt] = Field(
        default_factory=lambda: list(DEFAULT_EXPIRY_THRESHOLDS),
        validation_alias=AliasChoices(
            "expiryThresholds", "expiryThresholdsMinutes", "expiry_thresholds"
        ),
        serialization_alias="expiryThresholds",
    )
    input_deadline_thresholds: List[NonNegativeInt] = Field(
        default_factory=lambda: list(DEFAULT_INPUT_DEADLINE_THRESHOLDS),
        validation_alias=AliasChoices(
            "inputDeadlineThresholds",
            "inputDeadlineThresholdsMinutes",
            "input_deadline_thresholds",
        ),
        serialization_alias="inputDeadlineThresholds",
    )


class CoverageResult(LedgerModel):
    has_coverage: bool
    coverage_end: Optional[datetime] = None
    remaining_minutes: Optional[int] = None
    has_gap: bool = False
    gap_start: Optional[datetime] = None


class NextCandidateResult(LedgerModel):
    has_candidate: bool
    candidate: Optional[CodeWithStatus] = None


class NextCandidateSummary(LedgerModel):
    has_candidate: bool
    candidate_code: Optional[str] = None
    candidate_order: Optional[int] = None
    remaining_unused_count: int = 0


class DashboardResponse(LedgerModel):
    coverage: CoverageResult
    remaining_text: str
    next_candidate: NextCandidateResult
    active_codes: List[CodeWithStatus]
    unused_count: int
    total_count: int


class CodeSortKey(str, Enum):
    ORDER = "order"
    INPUT_DEADLINE = "inputDeadline"
    STATUS = "status"
    CREATED_AT = "createdAt"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class StoreDocument(LedgerModel):
    """The persisted JSON document."""

    version: PositiveInt = DOCUMENT_VERSION
    codes: List[CodeRecord] = Field(default_factory=list)
    notification_settings: NotificationSettings = Field(default_factory=NotificationSettings)


class ExportDocument(StoreDocument):
    exported_at: AwareDatetime = Field(default_factory=utcnow)


class ImportDataRequest(LedgerModel):
    content: str = Field(..., description="Exported JSON document as text")


class ImportDataResponse(LedgerModel):
    success: bool
    error: Optional[str] = None
    backup_path: Optional[str] = None


class BackupResponse(LedgerModel):
    path: Optional[str] = None
    content: str


class ParseEmailRequest(LedgerModel):
    text: str


class ParsedCode(LedgerModel):
    code: str
    input_deadline: Optional[datetime] = None
    validity_duration_minutes: Optional[int] = None


class ParseEmailResponse(LedgerModel):
    success: bool
    codes: List[ParsedCode] = Field(default_factory=list)
    error: Optional[str] = None


class NotificationMessage(LedgerModel):
    title: str
    body: str
    delivered_at: datetime
    code_id: Optional[str] = None
    kind: Optional[NotificationType] = None
    threshold_minutes: Optional[int] = None


class SuccessResponse(LedgerModel):
    success: bool


__all__ = [
    "BackupResponse",
    "CodeRecord",
    "CodeSortKey",
    "CodeStatus",
    "CodeWithStatus",
    "CoverageResult",
    "CreateCodeInput",
    "CreateCodesRequest",
    "DashboardResponse",
    "DEFAULT_EXPIRY_THRESHOLDS",
    "DOCUMENT_VERSION",
    "EditStartedAtRequest",
    "ExportDocument",
    "ImportDataRequest",
    "ImportDataResponse",
    "NextCandidateResult",
    "NextCandidateSummary",
    "NotificationMessage",
    "NotificationSettings",
    "NotificationType",
    "OrderUpdate",
    "ParseEmailRequest",
    "ParseEmailResponse",
    "ParsedCode",
    "SortDirection",
    "StartCodeRequest",
    "StoreDocument",
    "SuccessResponse",
    "UpdateCodeInput",
    "UpdateOrdersRequest",
    "utcnow",
]
