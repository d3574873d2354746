"""Persistence of the ledger as a single versioned JSON document.

The document is ``{version, codes, notificationSettings}``. With a path the
store rewrites the file atomically after every change; without one it keeps
everything in memory, which is what the tests use.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from api.models.schemas import (
    CodeRecord,
    CreateCodeInput,
    ExportDocument,
    NotificationSettings,
    OrderUpdate,
    StoreDocument,
    UpdateCodeInput,
    utcnow,
)
from core.exceptions import CodeNotFoundError, ImportDataError

logger = logging.getLogger(__name__)


def _expiry(started_at: Optional[datetime], validity_minutes: int) -> Optional[datetime]:
    if started_at is None:
        return None
    return started_at + timedelta(minutes=validity_minutes)


class CodeStore:
    """Mutable code repository backed by a JSON file or by memory."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = path
        self._document = self._load()

    # ------------------------------------------------------------------
    # Document I/O
    # ------------------------------------------------------------------
    def _load(self) -> StoreDocument:
        if self.path is None or not self.path.exists():
            return StoreDocument()
        try:
            return StoreDocument.model_validate_json(self.path.read_text(encoding="utf-8"))
        except ValidationError:
            logger.exception("Stored document at %s is invalid", self.path)
            raise

    def _save(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = self._document.model_dump_json(by_alias=True, indent=2)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".ledger-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_name, self.path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _replace_codes(self, codes: List[CodeRecord]) -> None:
        self._document = self._document.model_copy(update={"codes": codes})
        self._save()

    # ------------------------------------------------------------------
    # Codes
    # ------------------------------------------------------------------
    def get_all_codes(self) -> List[CodeRecord]:
        return list(self._document.codes)

    def get_code(self, code_id: str) -> CodeRecord:
        for code in self._document.codes:
            if code.id == code_id:
                return code
        raise CodeNotFoundError(code_id)

    def next_order(self) -> int:
        """One past the highest rank in use, or 1 for an empty ledger."""

        return max((code.order for code in self._document.codes), default=0) + 1

    def _build(self, payload: CreateCodeInput, order: int, now: datetime) -> CodeRecord:
        return CodeRecord(
            order=order,
            code=payload.code,
            input_deadline=payload.input_deadline,
            validity_duration_minutes=payload.validity_duration_minutes,
            created_at=now,
            updated_at=now,
        )

    def create_code(self, payload: CreateCodeInput) -> CodeRecord:
        return self.create_codes([payload])[0]

    def create_codes(self, payloads: Iterable[CreateCodeInput]) -> List[CodeRecord]:
        now = utcnow()
        next_order = self.next_order()
        created: List[CodeRecord] = []
        for payload in payloads:
            order = payload.order if payload.order is not None else next_order
            next_order = max(next_order, order) + 1
            created.append(self._build(payload, order, now))
        self._replace_codes(self.get_all_codes() + created)
        logger.info("Created %d code(s)", len(created))
        return created

    def update_code(self, code_id: str, payload: UpdateCodeInput) -> CodeRecord:
        """Apply a partial update, keeping ``expires_at`` derived from ``started_at``."""

        changes = payload.model_dump(exclude_unset=True)
        changes = {
            field: value
            for field, value in changes.items()
            if value is not None or field == "started_at"
        }
        return self._apply(code_id, changes)

    def _apply(self, code_id: str, changes: Dict[str, object]) -> CodeRecord:
        codes = self.get_all_codes()
        for index, existing in enumerate(codes):
            if existing.id != code_id:
                continue
            merged = existing.model_dump()
            merged.update(changes)
            merged["expires_at"] = _expiry(merged["started_at"], merged["validity_duration_minutes"])
            merged["updated_at"] = utcnow()
            updated = CodeRecord.model_validate(merged)
            codes[index] = updated
            self._replace_codes(codes)
            logger.info("Updated code %s (%s)", code_id, ", ".join(sorted(changes)) or "touch")
            return updated
        raise CodeNotFoundError(code_id)

    def delete_code(self, code_id: str) -> bool:
        codes = self.get_all_codes()
        remaining = [code for code in codes if code.id != code_id]
        if len(remaining) == len(codes):
            return False
        self._replace_codes(remaining)
        logger.info("Deleted code %s", code_id)
        return True

    def delete_all_codes(self) -> None:
        self._replace_codes([])

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------
    def start_code(self, code_id: str, started_at: Optional[datetime] = None) -> CodeRecord:
        return self._apply(code_id, {"started_at": started_at or utcnow()})

    def cancel_code(self, code_id: str) -> CodeRecord:
        return self._apply(code_id, {"started_at": None})

    def edit_started_at(self, code_id: str, new_started_at: datetime) -> CodeRecord:
        return self._apply(code_id, {"started_at": new_started_at})

    def update_orders(self, orders: Iterable[OrderUpdate]) -> None:
        """Reassign ranks in bulk; unknown ids are ignored."""

        new_orders = {item.id: item.order for item in orders}
        now = utcnow()
        codes = [
            code.model_copy(update={"order": new_orders[code.id], "updated_at": now})
            if code.id in new_orders
            else code
            for code in self.get_all_codes()
        ]
        self._replace_codes(codes)

    # ------------------------------------------------------------------
    # Notification settings
    # ------------------------------------------------------------------
    def get_notification_settings(self) -> NotificationSettings:
        return self._document.notification_settings.model_copy(deep=True)

    def update_notification_settings(self, settings: NotificationSettings) -> None:
        self._document = self._document.model_copy(update={"notification_settings": settings})
        self._save()
        logger.info("Updated notification settings")

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------
    def export_data(self) -> ExportDocument:
        return ExportDocument(
            version=self._document.version,
            codes=self.get_all_codes(),
            notification_settings=self.get_notification_settings(),
        )

    def create_backup(self, backup_dir: Optional[Path] = None) -> Tuple[Optional[Path], str]:
        """Serialize the current data, writing it under ``backup_dir`` when given.

        Returns ``(path_or_None, json_text)``.
        """

        content = self.export_data().model_dump_json(by_alias=True, indent=2)
        if backup_dir is None:
            return None, content
        backup_dir.mkdir(parents=True, exist_ok=True)
        path = backup_dir / f"backup-{utcnow().strftime('%Y%m%d-%H%M%S-%f')}.json"
        path.write_text(content, encoding="utf-8")
        logger.info("Wrote backup to %s", path)
        return path, content

    def import_data(self, content: str) -> None:
        """Replace all data with a previously exported document."""

        try:
            json.loads(content)
        except json.JSONDecodeError as exc:
            raise ImportDataError(f"JSON parse error: {exc}") from exc
        try:
            document = StoreDocument.model_validate_json(content)
        except ValidationError as exc:
            raise ImportDataError(f"Validation error: {exc}") from exc
        self._document = StoreDocument(
            version=document.version,
            codes=document.codes,
            notification_settings=document.notification_settings,
        )
        self._save()
        logger.info("Imported %d code(s)", len(document.codes))

    def reset(self) -> None:
        self._document = StoreDocument()
        self._save()
