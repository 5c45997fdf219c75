"""Tests for remote trail archiving."""

import pytest

from trail_sync.errors import IdentityRequiredError, RemoteUnavailableError, TrailNotSyncedError
from trail_sync.sync import archive_trail
from trail_sync.sync.archive import NOT_SYNCED


class TestArchiveTrail:
    def test_marks_remote_row(self, remote):
        remote.tables["trails"] = {"clonfert-graveyard": {"id": "clonfert-graveyard"}}
        archived_at = archive_trail(remote, "mary@example.ie", "clonfert-graveyard")
        row = remote.tables["trails"]["clonfert-graveyard"]
        assert row["archived"] is True
        assert row["archived_at"] == archived_at

    def test_requires_identity(self, remote):
        with pytest.raises(IdentityRequiredError):
            archive_trail(remote, None, "clonfert-graveyard")
        assert remote.calls == []

    def test_requires_remote(self):
        with pytest.raises(RemoteUnavailableError):
            archive_trail(None, "mary@example.ie", "clonfert-graveyard")

    def test_never_synced(self, remote):
        with pytest.raises(TrailNotSyncedError, match=NOT_SYNCED):
            archive_trail(remote, "mary@example.ie", "clonfert-graveyard")

    def test_remote_failure(self, remote):
        remote.fail = lambda *_: True
        with pytest.raises(RemoteUnavailableError):
            archive_trail(remote, "mary@example.ie", "clonfert-graveyard")

    def test_local_data_untouched(self, repos, remote, trail):
        remote.tables["trails"] = {trail.id: {"id": trail.id}}
        archive_trail(remote, "mary@example.ie", trail.id)
        assert repos.trails.get_trail(trail.id) == trail
