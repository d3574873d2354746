"""Request-scoped accessors for the objects created by ``create_app``."""

from __future__ import annotations

from fastapi import Request

from api.services.code_store import CodeStore
from core.settings import Settings
from scheduler.notifier import InboxNotifier
from scheduler.service import NotificationScheduler


def get_store(request: Request) -> CodeStore:
    return request.app.state.store


def get_scheduler(request: Request) -> NotificationScheduler:
    return request.app.state.scheduler


def get_notifier(request: Request) -> InboxNotifier:
    return request.app.state.notifier


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
