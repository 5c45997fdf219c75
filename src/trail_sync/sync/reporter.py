"""Sync report formatting functions.

Provides human-readable and machine-readable output for sync runs:

- ``format_sync_result`` -- summary of one drain cycle.
- ``format_sync_status`` -- queue snapshot.
- ``result_to_json`` / ``status_to_json`` -- structured dicts for MCP
  tool output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import SyncRunResult, SyncStatus


# ------------------------------------------------------------------
# Human-readable output
# ------------------------------------------------------------------


def format_sync_result(result: SyncRunResult) -> str:
    """Format a drain result as human-readable text.

    Args:
        result: The completed drain result.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    if result.skipped_reason:
        lines.append(f"Sync skipped: {result.skipped_reason}")
        return "\n".join(lines)

    header = "Sync completed" if result.success else "Sync stopped on error"
    lines.append(header)
    lines.append(f"Started: {result.started_at}")
    if result.completed_at:
        lines.append(f"Completed: {result.completed_at}")
    lines.append("")
    lines.append(f"Synced {result.synced_count} item(s)")
    lines.append(f"Last synced: {result.last_synced_at or 'never'}")

    if result.outcomes:
        lines.append("")
        lines.append("Items:")
        for outcome in result.outcomes:
            status = "ok" if outcome.success else "FAILED"
            lines.append(
                f"  [{status}] {outcome.operation.value} "
                f"{outcome.entity_type.value} {outcome.entity_id}"
            )

    if result.error:
        failed = result.failed[-1] if result.failed else None
        lines.append("")
        lines.append(f"Error: {result.error}")
        if failed is not None and failed.abandoned:
            lines.append(
                f"Item abandoned after {failed.attempts} attempts; "
                "later items will sync on the next run."
            )
        elif failed is not None:
            lines.append(
                f"Attempt {failed.attempts}; the item will be retried "
                "on the next run."
            )

    return "\n".join(lines).rstrip()


def format_sync_status(status: SyncStatus) -> str:
    """Format a queue snapshot as human-readable text."""
    stats = status.stats
    lines = [
        "Sync status",
        f"  Enabled:           {'yes' if status.sync_enabled else 'no'}",
        f"  Remote configured: {'yes' if status.remote_configured else 'no'}",
        f"  Identity:          {status.identity or '(none)'}",
        f"  Pending items:     {status.pending_count}",
        f"  Last synced:       {status.last_synced_at or 'never'}",
        f"  Synced POIs:       {stats.poi_count}",
        f"  Synced trails:     {stats.trail_count}",
        f"  Synced items:      {stats.synced_items}",
    ]
    if stats.abandoned_items:
        lines.append(f"  Abandoned items:   {stats.abandoned_items}")
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def result_to_json(result: SyncRunResult) -> dict:
    """Convert a drain result to a structured dict for JSON serialisation.

    Suitable for MCP ``structuredContent`` output.
    """
    outcomes = []
    for o in result.outcomes:
        entry: dict = {
            "item_id": o.item_id,
            "operation": o.operation.value,
            "entity_type": o.entity_type.value,
            "entity_id": o.entity_id,
            "success": o.success,
            "attempts": o.attempts,
        }
        if o.error:
            entry["error"] = o.error
        if o.abandoned:
            entry["abandoned"] = True
        outcomes.append(entry)

    return {
        "success": result.success,
        "synced_count": result.synced_count,
        "last_synced_at": result.last_synced_at,
        "error": result.error,
        "skipped_reason": result.skipped_reason,
        "started_at": result.started_at,
        "completed_at": result.completed_at,
        "outcomes": outcomes,
    }


def status_to_json(status: SyncStatus) -> dict:
    return {
        "sync_enabled": status.sync_enabled,
        "remote_configured": status.remote_configured,
        "identity": status.identity,
        "pending_count": status.pending_count,
        "last_synced_at": status.last_synced_at,
        "stats": status.stats.model_dump(),
    }
