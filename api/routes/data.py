"""HTTP routes for exporting, importing and backing up the ledger."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from api.dependencies import get_app_settings, get_scheduler, get_store
from api.models.schemas import (
    BackupResponse,
    ExportDocument,
    ImportDataRequest,
    ImportDataResponse,
    ParseEmailRequest,
    ParseEmailResponse,
    SuccessResponse,
)
from api.services.code_store import CodeStore
from core.exceptions import ImportDataError
from core.settings import Settings
from ledger.email_parser import parse_email_for_registration
from scheduler.service import NotificationScheduler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["data"])


@router.get("/data/export", response_model=ExportDocument)
async def export_data(store: CodeStore = Depends(get_store)) -> ExportDocument:
    return store.export_data()


@router.post("/data/backup", response_model=BackupResponse)
async def create_backup(
    store: CodeStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> BackupResponse:
    path, content = store.create_backup(settings.resolved_backup_dir)
    return BackupResponse(path=str(path) if path else None, content=content)


@router.post("/data/import", response_model=ImportDataResponse)
async def import_data(
    request: ImportDataRequest,
    store: CodeStore = Depends(get_store),
    scheduler: NotificationScheduler = Depends(get_scheduler),
    settings: Settings = Depends(get_app_settings),
) -> ImportDataResponse:
    """Replace all data with an exported document, backing up the current data first."""

    backup_path, _ = store.create_backup(settings.resolved_backup_dir)
    backup = str(backup_path) if backup_path else None
    try:
        store.import_data(request.content)
    except ImportDataError as exc:
        logger.warning("Import rejected: %s", exc)
        return ImportDataResponse(success=False, error=str(exc), backup_path=backup)

    scheduler.update_codes(store.get_all_codes())
    scheduler.update_settings(store.get_notification_settings())
    return ImportDataResponse(success=True, backup_path=backup)


@router.post("/data/reset", response_model=SuccessResponse)
async def reset_data(
    store: CodeStore = Depends(get_store),
    scheduler: NotificationScheduler = Depends(get_scheduler),
) -> SuccessResponse:
    """Drop every code and restore the default notification settings."""

    store.reset()
    scheduler.update_codes(store.get_all_codes())
    scheduler.update_settings(store.get_notification_settings())
    return SuccessResponse(success=True)


@router.post("/email/parse", response_model=ParseEmailResponse)
async def parse_email(request: ParseEmailRequest) -> ParseEmailResponse:
    """Extract codes, deadlines and validity periods from pasted email text."""

    return parse_email_for_registration(request.text)
