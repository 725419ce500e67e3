"""Tests for ConflictAwareWriter: fetch / resolve / write flow"""
import pytest
from unittest.mock import AsyncMock

from docsync.conflict import ConflictAwareWriter, ManualChoice, apply_manual_resolution
from docsync.conflict.models import ConflictResolutionResult, ConflictStrategy
from docsync.errors import ConflictError


def make_writer(remote=None, fetch_error=None):
    fetch = AsyncMock(return_value=remote, side_effect=fetch_error)
    write = AsyncMock(return_value=None)
    return ConflictAwareWriter(fetch_remote=fetch, write=write), fetch, write


class TestConflictAwareWriter:
    """Tests for ConflictAwareWriter.save and save_resolution."""

    @pytest.mark.asyncio
    async def test_new_document_written_as_is(self):
        writer, fetch, write = make_writer(remote=None)
        local = {"title": "New", "updatedAt": 1}

        outcome = await writer.save("quiz", "q1", local, "u1")

        assert outcome.success
        assert outcome.data == local
        assert outcome.resolution is None
        fetch.assert_awaited_once_with("quiz", "q1")
        write.assert_awaited_once_with("quiz", "q1", local)

    @pytest.mark.asyncio
    async def test_unchanged_remote_skips_resolution(self):
        base = {"title": "T", "updatedAt": 1}
        writer, _, write = make_writer(remote=dict(base))
        local = {"title": "Mine", "updatedAt": 2}

        outcome = await writer.save("quiz", "q1", local, "u1", base=base)

        assert outcome.success
        write.assert_awaited_once_with("quiz", "q1", local)

    @pytest.mark.asyncio
    async def test_resolved_conflict_writes_merged_data(self):
        base = {"title": "T", "description": "D", "updatedAt": 1}
        remote = {"title": "T", "description": "Theirs", "updatedAt": 3}
        writer, _, write = make_writer(remote=remote)
        local = {"title": "Mine", "description": "D", "updatedAt": 2}

        outcome = await writer.save("quiz", "q1", local, "u1", base=base)

        assert outcome.success
        assert outcome.resolution.strategy is ConflictStrategy.AUTO_MERGE
        expected = {"title": "Mine", "description": "Theirs", "updatedAt": 3}
        assert outcome.data == expected
        write.assert_awaited_once_with("quiz", "q1", expected)

    @pytest.mark.asyncio
    async def test_unresolved_conflict_returns_conflict_and_skips_write(self):
        remote = {"questions": ["b"], "updatedAt": 3}
        writer, _, write = make_writer(remote=remote)
        local = {"questions": ["a"], "updatedAt": 2}

        outcome = await writer.save("quiz", "q1", local, "u1", base={"questions": [], "updatedAt": 1})

        assert not outcome.success
        assert outcome.requires_user_input
        assert outcome.conflict.conflicting_fields == ["questions"]
        assert outcome.resolution.unresolved_fields == ["questions"]
        write.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_save_resolution_after_manual_choice(self):
        remote = {"questions": ["b"], "updatedAt": 3}
        writer, _, write = make_writer(remote=remote)
        local = {"questions": ["a"], "updatedAt": 2}

        outcome = await writer.save("quiz", "q1", local, "u1", config_override={"strategy": "manual"})
        result = apply_manual_resolution(outcome.conflict, ManualChoice.LOCAL)
        saved = await writer.save_resolution(outcome.conflict, result)

        assert saved.success
        write.assert_awaited_once_with("quiz", "q1", local)

    @pytest.mark.asyncio
    async def test_save_resolution_rejects_unresolved(self):
        remote = {"text": "b"}
        writer, _, write = make_writer(remote=remote)
        outcome = await writer.save("question", "x", {"text": "a"}, "u1", config_override={"strategy": "manual"})

        with pytest.raises(ConflictError) as excinfo:
            await writer.save_resolution(
                outcome.conflict, ConflictResolutionResult.needs_input(ConflictStrategy.MANUAL)
            )

        assert excinfo.value.context["documentId"] == "x"
        write.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fetch_errors_propagate(self):
        writer, _, write = make_writer(fetch_error=ConnectionError("offline"))

        with pytest.raises(ConnectionError):
            await writer.save("quiz", "q1", {"title": "x"}, "u1")
        write.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_expected_version_match_writes_draft(self):
        remote = {"title": "Theirs", "version": 4, "updatedAt": 3}
        writer, _, write = make_writer(remote=remote)
        local = {"title": "Mine", "version": 4, "updatedAt": 2}

        outcome = await writer.save("quiz", "q1", local, "u1", expected_version=4)

        assert outcome.success
        assert outcome.resolution is None
        write.assert_awaited_once_with("quiz", "q1", local)

    @pytest.mark.asyncio
    async def test_stale_version_resolves_and_reports_conflict_error(self):
        remote = {"questions": ["b"], "version": 5, "updatedAt": 3}
        writer, _, write = make_writer(remote=remote)
        local = {"questions": ["a"], "version": 4, "updatedAt": 2}

        outcome = await writer.save("quiz", "q1", local, "u1", expected_version=4)

        assert not outcome.success
        assert outcome.requires_user_input
        error = outcome.resolution.error
        assert isinstance(error, ConflictError)
        assert error.context["expectedVersion"] == 4
        assert error.context["currentVersion"] == 5
        write.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stale_version_still_auto_merges(self):
        remote = {"title": "T", "description": "Theirs", "version": 5, "updatedAt": 3}
        writer, _, write = make_writer(remote=remote)
        local = {"title": "Mine", "description": "Theirs", "version": 4, "updatedAt": 4}

        outcome = await writer.save("quiz", "q1", local, "u1", expected_version=4)

        assert outcome.success
        assert outcome.data["title"] == "Mine"
        assert outcome.data["version"] == 5
        write.assert_awaited_once()
