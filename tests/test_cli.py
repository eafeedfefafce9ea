"""Tests for the command line interface."""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from backupbox.cli import main
from backupbox.exceptions import BackupBoxNetworkError, BackupBoxNotFoundError
from backupbox.sync.models import SyncResult
from backupbox.sync.state import RemoteMetadata


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def folders_file(tmp_path):
    return tmp_path / "folders.json"


@pytest.fixture
def invoke(runner, folders_file):
    """Invoke the CLI with an isolated folder selection."""

    def _invoke(*args, **kwargs):
        return runner.invoke(
            main, ["--folders-file", str(folders_file), *args], **kwargs
        )

    return _invoke


@pytest.fixture
def docs(tmp_path):
    path = tmp_path / "docs"
    path.mkdir()
    (path / "a.txt").write_text("a")
    (path / "b.txt").write_text("b")
    return path


class TestHelp:
    """Tests for help output."""

    def test_main_help(self, runner):
        result = runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        for command in ("init", "add", "remove", "folders", "backup", "daemon"):
            assert command in result.output

    def test_backup_help(self, runner):
        result = runner.invoke(main, ["backup", "--help"])

        assert result.exit_code == 0
        assert "--no-progress" in result.output


class TestFolderCommands:
    """Tests for add, remove and folders."""

    def test_add_and_list(self, invoke, docs):
        result = invoke("add", str(docs), "--name", "my docs")
        assert result.exit_code == 0
        assert "Added folder" in result.output

        result = invoke("--json", "folders")
        assert result.exit_code == 0
        assert json.loads(result.output) == [
            {"localPath": str(docs.resolve()), "remoteName": "my docs"}
        ]

    def test_add_duplicate_name_fails(self, invoke, docs, tmp_path):
        other = tmp_path / "other"
        other.mkdir()
        invoke("add", str(docs), "--name", "docs")

        result = invoke("add", str(other), "--name", "docs")

        assert result.exit_code == 1
        assert "already in use" in result.output

    def test_add_missing_path(self, invoke, tmp_path):
        result = invoke("add", str(tmp_path / "nope"))
        assert result.exit_code != 0

    def test_remove(self, invoke, docs):
        invoke("add", str(docs))

        result = invoke("remove", "docs")

        assert result.exit_code == 0
        assert json.loads(invoke("--json", "folders").output) == []

    def test_remove_unknown(self, invoke):
        result = invoke("remove", "ghost")
        assert result.exit_code == 1

    def test_folders_empty(self, invoke):
        result = invoke("folders")

        assert result.exit_code == 0
        assert "No folders selected" in result.output


class TestBackup:
    """Tests for the backup command."""

    def test_no_folders(self, invoke):
        result = invoke("backup")

        assert result.exit_code == 1
        assert "No folders selected" in result.output

    def test_json_summary(self, invoke, docs):
        invoke("add", str(docs))
        summary = SyncResult(
            uploaded=2, skipped=0, failed=0, total_bytes=2, total_files=2
        )

        with patch("backupbox.cli.SyncEngine") as mock_engine:
            mock_engine.return_value.sync_all.return_value = summary
            result = invoke("--json", "backup")

        assert result.exit_code == 0
        assert json.loads(result.output) == summary.to_dict()
        [folders] = mock_engine.return_value.sync_all.call_args.args
        assert [f.remote_name for f in folders] == ["docs"]

    def test_failures_set_exit_code(self, invoke, docs):
        invoke("add", str(docs))

        with patch("backupbox.cli.SyncEngine") as mock_engine:
            mock_engine.return_value.sync_all.return_value = SyncResult(failed=1)
            result = invoke("backup", "--no-progress")

        assert result.exit_code == 1
        assert "Backup Complete" in result.output


class TestCount:
    """Tests for the count command."""

    def test_count_paths(self, invoke, docs):
        result = invoke("--json", "count", str(docs))

        assert result.exit_code == 0
        assert json.loads(result.output) == {"count": 2}

    def test_count_selected_folders(self, invoke, docs):
        invoke("add", str(docs))

        result = invoke("count")

        assert result.exit_code == 0
        assert "2 files" in result.output

    def test_count_nothing(self, invoke):
        result = invoke("count")
        assert result.exit_code == 1


class TestStatus:
    """Tests for the status command."""

    def test_status_json(self, invoke, docs):
        invoke("add", str(docs))
        metadata = RemoteMetadata(total_files=4, total_bytes=1024)

        with patch("backupbox.cli.MetadataStore") as mock_store:
            mock_store.return_value.load.return_value = metadata
            result = invoke("--json", "status")

        assert result.exit_code == 0
        [row] = json.loads(result.output)
        assert row["remoteName"] == "docs"
        assert row["totalFiles"] == 4
        assert row["lastBackup"] is None


class TestInit:
    """Tests for the init command."""

    def test_init_saves_config(self, invoke):
        with patch("backupbox.cli.FleaboxClient") as mock_client, patch(
            "backupbox.cli.config"
        ) as mock_config:
            mock_client.return_value.get_metadata.side_effect = (
                BackupBoxNotFoundError("Resource not found", 404)
            )
            result = invoke("init", "--api-url", "http://fleabox.test", "--token", "")

        assert result.exit_code == 0
        assert "reachable" in result.output
        mock_config.save.assert_called_once_with("http://fleabox.test", None)

    def test_init_unreachable_cancelled(self, invoke):
        with patch("backupbox.cli.FleaboxClient") as mock_client, patch(
            "backupbox.cli.config"
        ) as mock_config:
            mock_client.return_value.get_metadata.side_effect = (
                BackupBoxNetworkError("Network error: refused")
            )
            result = invoke(
                "init", "--api-url", "http://down.test", "--token", "", input="n\n"
            )

        assert result.exit_code == 1
        mock_config.save.assert_not_called()


class TestServerWarning:
    """Tests for the missing-configuration hint."""

    def test_warns_when_no_server_configured(self, invoke, docs):
        invoke("add", str(docs))

        with patch("backupbox.cli.config") as mock_config, patch(
            "backupbox.cli.MetadataStore"
        ) as mock_store:
            mock_config.is_configured.return_value = False
            mock_config.api_url = "http://localhost:3000"
            mock_store.return_value.load.return_value = RemoteMetadata()
            result = invoke("status")

        assert result.exit_code == 0
        assert "backupbox init" in result.output

    def test_no_warning_with_explicit_url(self, invoke, docs):
        invoke("add", str(docs))

        with patch("backupbox.cli.config") as mock_config, patch(
            "backupbox.cli.MetadataStore"
        ) as mock_store:
            mock_config.is_configured.return_value = False
            mock_store.return_value.load.return_value = RemoteMetadata()
            result = invoke("--api-url", "http://fleabox.test", "status")

        assert result.exit_code == 0
        assert "backupbox init" not in result.output
