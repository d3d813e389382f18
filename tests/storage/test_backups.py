# tests/storage/test_backups.py
"""
Tests for BackupManager: snapshot naming, ordering, retention, loading
and isolation between sessions whose ids share a prefix.
"""

import logging

import pytest

from llmsession.config import RecoveryConfig
from llmsession.exceptions import BackupError
from llmsession.models import Session
from llmsession.storage import BackupManager


class TestSnapshot:
    """Creating snapshots."""

    @pytest.mark.asyncio
    async def test_snapshot_creates_loadable_backup(self, backups, sample_session):
        handle = await backups.snapshot(sample_session)

        assert handle is not None
        assert handle.session_id == sample_session.session_id
        assert handle.path.exists()
        assert handle.name.startswith(f"{sample_session.session_id}-")

        restored = await backups.load(handle)
        assert restored.metadata == sample_session.metadata
        assert restored.messages == sample_session.messages

    @pytest.mark.asyncio
    async def test_snapshots_are_newest_first(self, backups, sample_session):
        handles = []
        for i in range(3):
            sample_session.add_message(f"turn {i}", "user")
            handles.append(await backups.snapshot(sample_session))

        listed = await backups.list_backups(sample_session.session_id)

        assert [h.name for h in listed] == [h.name for h in reversed(handles)]
        assert listed[0].created_at > listed[1].created_at > listed[2].created_at

    @pytest.mark.asyncio
    async def test_retention_keeps_newest(self, backups, sample_session):
        """After K > max_backups snapshots exactly the newest max_backups remain."""
        handles = [await backups.snapshot(sample_session) for _ in range(8)]

        listed = await backups.list_backups(sample_session.session_id)

        assert len(listed) == 5
        assert [h.name for h in listed] == [h.name for h in reversed(handles[-5:])]
        assert not any(h.path.exists() for h in handles[:3])

    @pytest.mark.asyncio
    async def test_retention_respects_config(self, tmp_path, sample_session):
        manager = BackupManager(RecoveryConfig(backup_dir=tmp_path / "b", max_backups=2))
        for _ in range(4):
            await manager.snapshot(sample_session)
        assert len(await manager.list_backups(sample_session.session_id)) == 2

    @pytest.mark.asyncio
    async def test_snapshot_failure_is_swallowed(self, backups, sample_session, monkeypatch, caplog):
        async def failing_replace(*args, **kwargs):
            raise OSError("read-only file system")

        monkeypatch.setattr("llmsession.storage.backups.aios.replace", failing_replace)
        with caplog.at_level(logging.WARNING, logger="llmsession"):
            handle = await backups.snapshot(sample_session)

        assert handle is None
        assert "Failed to create backup" in caplog.text

    @pytest.mark.asyncio
    async def test_snapshot_rejects_unsafe_id(self, backups):
        session = Session.create(session_id="../escape")
        assert await backups.snapshot(session) is None


class TestIsolation:
    """Backups of one session never leak into another."""

    @pytest.mark.asyncio
    async def test_prefix_ids_are_isolated(self, backups):
        short = Session.create(session_id="session-1")
        longer = Session.create(session_id="session-1-extra")
        await backups.snapshot(short)
        await backups.snapshot(longer)
        await backups.snapshot(longer)

        assert len(await backups.list_backups("session-1")) == 1
        assert len(await backups.list_backups("session-1-extra")) == 2

    @pytest.mark.asyncio
    async def test_pruning_one_session_keeps_others(self, tmp_path):
        manager = BackupManager(RecoveryConfig(backup_dir=tmp_path / "b", max_backups=1))
        first = Session.create(session_id="session-a")
        second = Session.create(session_id="session-b")
        await manager.snapshot(first)
        await manager.snapshot(second)
        await manager.snapshot(first)

        assert len(await manager.list_backups("session-a")) == 1
        assert len(await manager.list_backups("session-b")) == 1

    @pytest.mark.asyncio
    async def test_delete_all(self, backups, sample_session):
        other = Session.create(session_id="session-other")
        await backups.snapshot(sample_session)
        await backups.snapshot(sample_session)
        await backups.snapshot(other)

        assert await backups.delete_all(sample_session.session_id) == 2
        assert await backups.list_backups(sample_session.session_id) == []
        assert len(await backups.list_backups("session-other")) == 1


class TestLoad:
    """Reading backups back."""

    @pytest.mark.asyncio
    async def test_corrupt_backup_raises(self, backups, sample_session):
        handle = await backups.snapshot(sample_session)
        handle.path.write_text("{ truncated")
        with pytest.raises(BackupError):
            await backups.load(handle)

    @pytest.mark.asyncio
    async def test_invalid_document_raises(self, backups, sample_session):
        handle = await backups.snapshot(sample_session)
        handle.path.write_text('{"messages": [{"role": "user"}]}')
        with pytest.raises(BackupError):
            await backups.load(handle)

    @pytest.mark.asyncio
    async def test_missing_backup_raises(self, backups, sample_session):
        handle = await backups.snapshot(sample_session)
        handle.path.unlink()
        with pytest.raises(BackupError):
            await backups.load(handle)

    @pytest.mark.asyncio
    async def test_listing_without_directory(self, backups):
        assert await backups.list_backups("session-none") == []

    @pytest.mark.asyncio
    async def test_unrelated_files_ignored(self, backups, sample_session):
        await backups.snapshot(sample_session)
        (backups.backup_dir / "README.txt").write_text("x")
        (backups.backup_dir / f"{sample_session.session_id}-latest.json").write_text("{}")
        assert len(await backups.list_backups(sample_session.session_id)) == 1
