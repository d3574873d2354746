"""HTTP routes for registering, activating and inspecting promo codes.

Every mutation re-reads the store and hands the fresh code list to the
notification scheduler so reminders never run against stale records. Handlers
are ``async`` so they execute on the event loop that owns the scheduler timers.
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_scheduler, get_store
from api.models.schemas import (
    CodeRecord,
    CodeSortKey,
    CodeStatus,
    CodeWithStatus,
    CoverageResult,
    CreateCodeInput,
    CreateCodesRequest,
    DashboardResponse,
    EditStartedAtRequest,
    NextCandidateResult,
    NextCandidateSummary,
    SortDirection,
    StartCodeRequest,
    SuccessResponse,
    UpdateCodeInput,
    UpdateOrdersRequest,
    utcnow,
)
from api.services.code_store import CodeStore
from core.exceptions import CodeNotFoundError
from ledger.candidate import get_next_candidate, next_candidate_summary
from ledger.coverage import calculate_coverage
from ledger.formatting import format_remaining_time
from ledger.status import active_codes, attach_status_to_all, unused_codes
from ledger.views import apply_filter, apply_sort
from scheduler.service import NotificationScheduler

router = APIRouter(prefix="/api", tags=["codes"])


def _sync(store: CodeStore, scheduler: NotificationScheduler) -> None:
    scheduler.update_codes(store.get_all_codes())


@router.get("/codes", response_model=List[CodeWithStatus])
async def list_codes(
    status: Optional[List[CodeStatus]] = Query(default=None),
    deadline_within_days: Optional[int] = Query(default=None, alias="deadlineWithinDays", ge=0),
    sort: CodeSortKey = Query(default=CodeSortKey.ORDER),
    direction: SortDirection = Query(default=SortDirection.ASC),
    store: CodeStore = Depends(get_store),
) -> List[CodeWithStatus]:
    """Return codes with their current status, optionally filtered and sorted."""

    now = utcnow()
    codes = attach_status_to_all(store.get_all_codes(), now)
    codes = apply_filter(codes, now, statuses=status, deadline_within_days=deadline_within_days)
    return apply_sort(codes, sort, direction)


@router.post("/codes", response_model=CodeRecord, status_code=201)
async def create_code(
    request: CreateCodeInput,
    store: CodeStore = Depends(get_store),
    scheduler: NotificationScheduler = Depends(get_scheduler),
) -> CodeRecord:
    code = store.create_code(request)
    _sync(store, scheduler)
    return code


@router.post("/codes/batch", response_model=List[CodeRecord], status_code=201)
async def create_codes(
    request: CreateCodesRequest,
    store: CodeStore = Depends(get_store),
    scheduler: NotificationScheduler = Depends(get_scheduler),
) -> List[CodeRecord]:
    """Register several codes at once, e.g. everything parsed from one email."""

    codes = store.create_codes(request.inputs)
    _sync(store, scheduler)
    return codes


@router.delete("/codes", response_model=SuccessResponse)
async def delete_all_codes(
    store: CodeStore = Depends(get_store),
    scheduler: NotificationScheduler = Depends(get_scheduler),
) -> SuccessResponse:
    store.delete_all_codes()
    _sync(store, scheduler)
    return SuccessResponse(success=True)


@router.put("/codes/order", response_model=SuccessResponse)
async def update_orders(
    request: UpdateOrdersRequest,
    store: CodeStore = Depends(get_store),
    scheduler: NotificationScheduler = Depends(get_scheduler),
) -> SuccessResponse:
    store.update_orders(request.orders)
    _sync(store, scheduler)
    return SuccessResponse(success=True)


@router.patch("/codes/{code_id}", response_model=CodeRecord)
async def update_code(
    code_id: str,
    request: UpdateCodeInput,
    store: CodeStore = Depends(get_store),
    scheduler: NotificationScheduler = Depends(get_scheduler),
) -> CodeRecord:
    try:
        code = store.update_code(code_id, request)
    except CodeNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    _sync(store, scheduler)
    return code


@router.delete("/codes/{code_id}", response_model=SuccessResponse)
async def delete_code(
    code_id: str,
    store: CodeStore = Depends(get_store),
    scheduler: NotificationScheduler = Depends(get_scheduler),
) -> SuccessResponse:
    success = store.delete_code(code_id)
    _sync(store, scheduler)
    return SuccessResponse(success=success)


@router.post("/codes/{code_id}/start", response_model=CodeRecord)
async def start_code(
    code_id: str,
    request: Optional[StartCodeRequest] = None,
    store: CodeStore = Depends(get_store),
    scheduler: NotificationScheduler = Depends(get_scheduler),
) -> CodeRecord:
    """Mark a code as applied; ``startedAt`` defaults to now."""

    started_at = request.started_at if request else None
    try:
        code = store.start_code(code_id, started_at)
    except CodeNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    _sync(store, scheduler)
    return code


@router.post("/codes/{code_id}/cancel", response_model=CodeRecord)
async def cancel_code(
    code_id: str,
    store: CodeStore = Depends(get_store),
    scheduler: NotificationScheduler = Depends(get_scheduler),
) -> CodeRecord:
    try:
        code = store.cancel_code(code_id)
    except CodeNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    _sync(store, scheduler)
    return code


@router.put("/codes/{code_id}/started-at", response_model=CodeRecord)
async def edit_started_at(
    code_id: str,
    request: EditStartedAtRequest,
    store: CodeStore = Depends(get_store),
    scheduler: NotificationScheduler = Depends(get_scheduler),
) -> CodeRecord:
    try:
        code = store.edit_started_at(code_id, request.new_started_at)
    except CodeNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    _sync(store, scheduler)
    return code


@router.get("/coverage", response_model=CoverageResult)
async def get_coverage(store: CodeStore = Depends(get_store)) -> CoverageResult:
    return calculate_coverage(store.get_all_codes())


@router.get("/next-candidate", response_model=NextCandidateResult)
async def get_candidate(store: CodeStore = Depends(get_store)) -> NextCandidateResult:
    return get_next_candidate(store.get_all_codes())


@router.get("/next-candidate/summary", response_model=NextCandidateSummary)
async def get_candidate_summary(store: CodeStore = Depends(get_store)) -> NextCandidateSummary:
    return next_candidate_summary(store.get_all_codes())


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(store: CodeStore = Depends(get_store)) -> DashboardResponse:
    """Coverage, next candidate and counts evaluated at a single instant."""

    codes = store.get_all_codes()
    now = utcnow()
    coverage = calculate_coverage(codes, now)
    return DashboardResponse(
        coverage=coverage,
        remaining_text=format_remaining_time(coverage.remaining_minutes),
        next_candidate=get_next_candidate(codes, now),
        active_codes=active_codes(codes, now),
        unused_count=len(unused_codes(codes, now)),
        total_count=len(codes),
    )
