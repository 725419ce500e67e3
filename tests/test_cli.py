"""Tests for DocSync CLI

Uses Click's test runner for command testing.
"""

import asyncio
import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from docsync.cli import cli
from docsync.queue import (
    JsonFileQueueStorage,
    OfflineQueue,
    OfflineQueueConfig,
    OperationStatus,
    QueuedOperation,
    OperationType,
)


def seed_queue(base_path: Path, statuses):
    """Write queued operation snapshots the way a running app would."""
    operations = [
        QueuedOperation(
            type=OperationType.UPDATE,
            collection="quizzes",
            data={"n": i},
            max_retries=5,
            status=status,
            attempts=5 if status is OperationStatus.FAILED else 0,
            last_error="HTTP 500" if status is OperationStatus.FAILED else None,
        )
        for i, status in enumerate(statuses)
    ]
    path = base_path / "docsync_offline_queue.json"
    path.write_text(json.dumps([op.to_dict() for op in operations]))
    return [op.id for op in operations]


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def initialized(runner, tmp_path):
    base_path = tmp_path / "docsync"
    result = runner.invoke(cli, ["--data-dir", str(base_path), "init"])
    assert result.exit_code == 0
    return base_path


def invoke(runner, base_path, *args, **kwargs):
    return runner.invoke(cli, ["--data-dir", str(base_path), *args], **kwargs)


class TestCLIBasics:
    """Top-level options."""

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "docsync" in result.output

    def test_verbose_and_quiet_are_exclusive(self, runner, tmp_path):
        result = runner.invoke(cli, ["--data-dir", str(tmp_path), "-v", "-q", "queue", "status"])
        assert result.exit_code != 0
        assert "mutually exclusive" in result.output


class TestCLIInit:
    """Tests for 'docsync init'."""

    def test_init_creates_config(self, runner, tmp_path):
        base_path = tmp_path / "docsync"
        result = invoke(runner, base_path, "init")

        assert result.exit_code == 0
        content = (base_path / "config.yaml").read_text()
        assert "queue:" in content
        assert "max_queue_size: 100" in content

    def test_init_uses_env_var(self, runner, tmp_path):
        base_path = tmp_path / "from-env"
        with patch.dict(os.environ, {"DOCSYNC_BASE_PATH": str(base_path)}):
            result = runner.invoke(cli, ["init"])
        assert result.exit_code == 0
        assert (base_path / "config.yaml").exists()

    def test_init_keeps_existing_config(self, runner, initialized):
        (initialized / "config.yaml").write_text("queue:\n  max_retries: 2\n")
        result = invoke(runner, initialized, "init")

        assert result.exit_code == 0
        assert "Config exists" in result.output
        assert "max_retries: 2" in (initialized / "config.yaml").read_text()

    def test_commands_require_init(self, runner, tmp_path):
        result = invoke(runner, tmp_path / "missing", "queue", "status")
        assert result.exit_code == 1
        assert "not initialized" in result.output


class TestCLIConfig:
    """Tests for 'docsync config'."""

    def test_set_and_get(self, runner, initialized):
        result = invoke(runner, initialized, "config", "set", "queue.max_retries", "3")
        assert result.exit_code == 0

        result = invoke(runner, initialized, "config", "get", "queue.max_retries")
        assert result.exit_code == 0
        assert result.output.strip() == "3"

    def test_set_nested_conflict_policy(self, runner, initialized):
        result = invoke(runner, initialized, "config", "set", "conflicts.question.strategy", "manual")
        assert result.exit_code == 0

        result = invoke(runner, initialized, "config", "show", "--effective")
        data = json.loads(result.output)
        assert data["conflicts"] == {"question": {"strategy": "manual"}}

    def test_invalid_value_is_rolled_back(self, runner, initialized):
        before = (initialized / "config.yaml").read_text()
        result = invoke(runner, initialized, "config", "set", "queue.max_retries", "0")

        assert result.exit_code == 1
        assert (initialized / "config.yaml").read_text() == before

    def test_get_missing_key(self, runner, initialized):
        result = invoke(runner, initialized, "config", "get", "queue.nope")
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_show(self, runner, initialized):
        result = invoke(runner, initialized, "config", "show")
        assert result.exit_code == 0
        assert "queue:" in result.output


class TestCLIQueue:
    """Tests for 'docsync queue'."""

    def test_status_empty(self, runner, initialized):
        result = invoke(runner, initialized, "queue", "status", "--json-output")
        assert result.exit_code == 0
        assert json.loads(result.output) == {
            "total": 0,
            "pending": 0,
            "processing": 0,
            "completed": 0,
            "failed": 0,
            "is_processing": False,
            "persistence_error": None,
        }

    def test_status_counts(self, runner, initialized):
        seed_queue(initialized, [OperationStatus.PENDING, OperationStatus.FAILED, OperationStatus.PROCESSING])

        result = invoke(runner, initialized, "queue", "status", "--json-output")
        data = json.loads(result.output)

        # interrupted 'processing' operations are reported as pending after reload
        assert data["total"] == 3
        assert data["pending"] == 2
        assert data["failed"] == 1

    def test_status_text(self, runner, initialized):
        seed_queue(initialized, [OperationStatus.PENDING])
        result = invoke(runner, initialized, "queue", "status")
        assert result.exit_code == 0
        assert "Pending:    1" in result.output

    def test_list_filters_by_status(self, runner, initialized):
        ids = seed_queue(initialized, [OperationStatus.PENDING, OperationStatus.FAILED])

        result = invoke(runner, initialized, "queue", "list", "--status", "failed", "--json-output")
        data = json.loads(result.output)

        assert [op["id"] for op in data] == [ids[1]]
        assert data[0]["last_error"] == "HTTP 500"

    def test_list_does_not_run_operations(self, runner, initialized):
        ids = seed_queue(initialized, [OperationStatus.PENDING])

        result = invoke(runner, initialized, "queue", "list")
        assert result.exit_code == 0
        assert ids[0] in result.output

        stored = json.loads((initialized / "docsync_offline_queue.json").read_text())
        assert stored[0]["status"] == "pending"
        assert stored[0]["attempts"] == 0

    def test_remove(self, runner, initialized):
        ids = seed_queue(initialized, [OperationStatus.PENDING, OperationStatus.FAILED])

        result = invoke(runner, initialized, "queue", "remove", ids[1])
        assert result.exit_code == 0

        stored = json.loads((initialized / "docsync_offline_queue.json").read_text())
        assert [op["id"] for op in stored] == [ids[0]]

    def test_remove_unknown(self, runner, initialized):
        result = invoke(runner, initialized, "queue", "remove", "nope")
        assert result.exit_code == 1

    def test_clear_requires_confirmation(self, runner, initialized):
        seed_queue(initialized, [OperationStatus.PENDING])

        result = invoke(runner, initialized, "queue", "clear", input="n\n")
        assert result.exit_code != 0
        assert len(json.loads((initialized / "docsync_offline_queue.json").read_text())) == 1

        result = invoke(runner, initialized, "queue", "clear", "--yes")
        assert result.exit_code == 0
        assert "Removed 1 operations" in result.output
        assert json.loads((initialized / "docsync_offline_queue.json").read_text()) == []

    def test_clear_completed_only(self, runner, initialized):
        async def seed():
            config = OfflineQueueConfig(auto_process=False)
            q = await OfflineQueue.open(config=config, storage=JsonFileQueueStorage(initialized, config.storage_key))

            async def ok(data):
                return None

            await q.enqueue("create", "quizzes", {}, operation=ok)
            await q.enqueue("create", "quizzes", {})
            await q.process_queue()
            q.destroy()

        asyncio.run(seed())

        result = invoke(runner, initialized, "queue", "clear", "--completed")
        assert result.exit_code == 0
        assert "Removed 1 operations" in result.output


class TestCLIConflict:
    """Tests for 'docsync conflict'."""

    @pytest.fixture
    def documents(self, tmp_path):
        paths = {}
        for name, doc in {
            "base": {"title": "T", "description": "D", "questions": [1], "updatedAt": 1},
            "local": {"title": "Mine", "description": "D", "questions": [1], "updatedAt": 3},
            "remote": {"title": "T", "description": "Theirs", "questions": [1], "updatedAt": 2},
            "remote_clash": {"title": "T", "description": "D", "questions": [2], "updatedAt": 2},
            "local_clash": {"title": "T", "description": "D", "questions": [3], "updatedAt": 3},
        }.items():
            path = tmp_path / f"{name}.json"
            path.write_text(json.dumps(doc))
            paths[name] = str(path)
        return paths

    def test_detect(self, runner, tmp_path, documents):
        result = invoke(runner, tmp_path, "conflict", "detect", documents["local"], documents["remote"])
        assert result.exit_code == 0
        assert json.loads(result.output) == ["title", "description", "updatedAt"]

    def test_detect_with_exclusion(self, runner, tmp_path, documents):
        result = invoke(runner, tmp_path, "conflict", "detect",
                        documents["local"], documents["remote"], "-x", "updatedAt")
        assert json.loads(result.output) == ["title", "description"]

    def test_resolve_auto_merge(self, runner, tmp_path, documents):
        result = invoke(runner, tmp_path, "conflict", "resolve", "quiz", "q1",
                        documents["local"], documents["remote"], "--base", documents["base"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["resolved"] is True
        assert data["strategy"] == "auto-merge"
        assert data["merged_data"] == {
            "title": "Mine", "description": "Theirs", "questions": [1], "updatedAt": 3,
        }

    def test_resolve_needs_input_exits_2(self, runner, tmp_path, documents):
        result = invoke(runner, tmp_path, "conflict", "resolve", "quiz", "q1",
                        documents["local_clash"], documents["remote_clash"], "--base", documents["base"])

        assert result.exit_code == 2
        data = json.loads(result.output)
        assert data["requires_user_input"] is True
        assert data["unresolved_fields"] == ["questions"]

    def test_resolve_strategy_override(self, runner, tmp_path, documents):
        result = invoke(runner, tmp_path, "conflict", "resolve", "quiz", "q1",
                        documents["local"], documents["remote"], "--strategy", "first-write-wins")
        data = json.loads(result.output)
        assert data["merged_data"]["title"] == "T"

    def test_resolve_uses_config_overrides(self, runner, initialized, documents):
        invoke(runner, initialized, "config", "set", "conflicts.quiz.strategy", "manual")

        result = invoke(runner, initialized, "conflict", "resolve", "quiz", "q1",
                        documents["local"], documents["remote"])
        assert result.exit_code == 2
        assert json.loads(result.output)["strategy"] == "manual"

    def test_invalid_json_document(self, runner, tmp_path, documents):
        bad = tmp_path / "bad.json"
        bad.write_text("[1, 2]")
        result = invoke(runner, tmp_path, "conflict", "detect", str(bad), documents["remote"])
        assert result.exit_code == 1
        assert "JSON object" in result.output
