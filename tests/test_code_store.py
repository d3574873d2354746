from __future__ import annotations

import json
from datetime import timedelta

import pytest

from api.models.schemas import (
    CreateCodeInput,
    NotificationSettings,
    OrderUpdate,
    UpdateCodeInput,
)
from api.services.code_store import CodeStore
from core.exceptions import CodeNotFoundError, ImportDataError
from tests.factories import day


def create(store: CodeStore, code: str = "TESTCODE123", **kwargs):
    payload = CreateCodeInput(
        code=code,
        input_deadline=kwargs.pop("input_deadline", day(30)),
        validity_duration_minutes=kwargs.pop("validity_duration_minutes", 60),
        **kwargs,
    )
    return store.create_code(payload)


def test_orders_are_assigned_when_omitted() -> None:
    store = CodeStore()
    first = create(store, "FIRSTCODE01")
    second = create(store, "SECONDCODE2")
    explicit = create(store, "THIRDCODE03", order=10)
    fourth = create(store, "FOURTHCODE4")

    assert [first.order, second.order, explicit.order, fourth.order] == [1, 2, 10, 11]


def test_start_and_cancel_keep_expiry_consistent() -> None:
    store = CodeStore()
    code = create(store)

    started = store.start_code(code.id, day(1))
    assert started.started_at == day(1)
    assert started.expires_at == day(1) + timedelta(minutes=60)

    moved = store.edit_started_at(code.id, day(2))
    assert moved.expires_at == day(2) + timedelta(minutes=60)

    cancelled = store.cancel_code(code.id)
    assert cancelled.started_at is None
    assert cancelled.expires_at is None


def test_validity_change_recomputes_expiry() -> None:
    store = CodeStore()
    code = create(store)
    store.start_code(code.id, day(1))

    updated = store.update_code(code.id, UpdateCodeInput(validity_duration_minutes=120))

    assert updated.expires_at == day(1) + timedelta(minutes=120)
    assert updated.code == "TESTCODE123"


def test_update_with_null_started_at_cancels() -> None:
    store = CodeStore()
    code = create(store)
    store.start_code(code.id, day(1))

    updated = store.update_code(code.id, UpdateCodeInput.model_validate({"startedAt": None}))

    assert updated.started_at is None
    assert updated.expires_at is None


def test_unknown_ids() -> None:
    store = CodeStore()

    with pytest.raises(CodeNotFoundError):
        store.start_code("missing")
    with pytest.raises(CodeNotFoundError):
        store.get_code("missing")
    assert store.delete_code("missing") is False


def test_update_orders_ignores_unknown_ids() -> None:
    store = CodeStore()
    code = create(store)

    store.update_orders([OrderUpdate(id=code.id, order=7), OrderUpdate(id="missing", order=1)])

    assert [c.order for c in store.get_all_codes()] == [7]


def test_document_is_persisted_with_camel_case_keys(tmp_path) -> None:
    path = tmp_path / "ledger.json"
    store = CodeStore(path)
    code = create(store)
    store.start_code(code.id, day(1))
    store.update_notification_settings(NotificationSettings(expiry_thresholds=[60]))

    document = json.loads(path.read_text(encoding="utf-8"))
    assert document["version"] == 1
    assert document["notificationSettings"]["expiryThresholds"] == [60]
    [stored] = document["codes"]
    assert {"inputDeadline", "validityDurationMinutes", "startedAt", "expiresAt"} <= stored.keys()

    reloaded = CodeStore(path)
    assert reloaded.get_code(code.id).started_at == day(1)
    assert reloaded.get_notification_settings().expiry_thresholds == [60]


def test_invalid_import_is_rejected_and_data_kept() -> None:
    store = CodeStore()
    create(store)

    with pytest.raises(ImportDataError):
        store.import_data("{not json")
    with pytest.raises(ImportDataError):
        store.import_data(json.dumps({"version": 1, "codes": [{"code": "X"}]}))

    assert len(store.get_all_codes()) == 1


def test_import_accepts_minutes_suffixed_settings() -> None:
    store = CodeStore()
    content = json.dumps(
        {
            "version": 1,
            "codes": [],
            "notificationSettings": {
                "expiryThresholdsMinutes": [15],
                "inputDeadlineThresholdsMinutes": [1440],
            },
        }
    )

    store.import_data(content)

    settings = store.get_notification_settings()
    assert settings.expiry_thresholds == [15]
    assert settings.input_deadline_thresholds == [1440]


def test_export_round_trips_through_import() -> None:
    source = CodeStore()
    create(source, "EXPORTCODE1")
    exported = source.export_data().model_dump_json(by_alias=True)

    target = CodeStore()
    target.import_data(exported)

    assert [c.code for c in target.get_all_codes()] == ["EXPORTCODE1"]


def test_backup_is_written(tmp_path) -> None:
    store = CodeStore()
    create(store)

    path, content = store.create_backup(tmp_path / "backups")

    assert path is not None and path.exists()
    assert path.name.startswith("backup-")
    assert json.loads(path.read_text(encoding="utf-8")) == json.loads(content)
    assert store.create_backup(None)[0] is None
