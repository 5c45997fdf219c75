"""Outbound sync: queue drain engine, row mapping, reporting and triggers."""

from .archive import archive_trail
from .engine import SyncEngine
from .models import ItemOutcome, SyncRunResult, SyncStatus
from .reporter import (
    format_sync_result,
    format_sync_status,
    result_to_json,
    status_to_json,
)
from .restore import RestoreSummary, WelcomeResult, WelcomeService
from .triggers import periodic_drain

__all__ = [
    "ItemOutcome",
    "RestoreSummary",
    "SyncEngine",
    "SyncRunResult",
    "SyncStatus",
    "WelcomeResult",
    "WelcomeService",
    "archive_trail",
    "format_sync_result",
    "format_sync_status",
    "periodic_drain",
    "result_to_json",
    "status_to_json",
]
