"""Tests for the backup engine."""

import os
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from backupbox.exceptions import BackupBoxConfigError
from backupbox.folders import FolderConfig
from backupbox.sync import SyncEngine, SyncResult


def _write(path: Path, size: int, mtime_s: float = 1_700_000_000.0) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"x" * size)
    os.utime(path, (mtime_s, mtime_s))
    return path


class TestSyncFolder:
    """Test SyncEngine.sync_folder."""

    @pytest.fixture
    def engine(self, client, no_sleep):
        """Create a backup engine talking to the fake server."""
        return SyncEngine(client, sleep=no_sleep)

    def test_empty_folder_without_metadata(self, engine, tmp_path):
        """Empty local folder and no remote metadata yields all zeros."""
        result = engine.sync_folder(tmp_path, "empty")

        assert result == SyncResult(
            uploaded=0, skipped=0, failed=0, total_bytes=0, total_files=0
        )

    def test_two_new_files(self, engine, fake_server, tmp_path):
        """Two new files of 3 KB and 5 KB are both uploaded."""
        _write(tmp_path / "a.txt", 3 * 1024)
        _write(tmp_path / "b.txt", 5 * 1024)

        result = engine.sync_folder(tmp_path, "docs")

        assert result.uploaded == 2
        assert result.skipped == 0
        assert result.failed == 0
        assert result.total_bytes == 8192
        assert result.total_files == 2
        assert sorted(fake_server.uploads()) == ["a.txt", "b.txt"]

    def test_metadata_saved_with_recomputed_totals(
        self, engine, fake_server, tmp_path
    ):
        """Saved metadata lists every uploaded file and consistent totals."""
        _write(tmp_path / "a.txt", 10)
        _write(tmp_path / "sub" / "b.bin", 20)

        engine.sync_folder(tmp_path, "docs")

        metadata = fake_server.metadata("docs")
        assert set(metadata["files"]) == {"a.txt", "sub/b.bin"}
        assert metadata["totalFiles"] == 2
        assert metadata["totalBytes"] == 30
        assert metadata["lastBackup"] is not None
        assert metadata["files"]["sub/b.bin"]["mtime"] == 1_700_000_000_000

    def test_second_run_is_idempotent(self, engine, fake_server, tmp_path):
        """A second run without local changes uploads nothing."""
        _write(tmp_path / "a.txt", 100)
        _write(tmp_path / "nested" / "b.txt", 200)
        engine.sync_folder(tmp_path, "docs")

        result = engine.sync_folder(tmp_path, "docs")

        assert result.uploaded == 0
        assert result.skipped == 2
        assert result.total_files == 2
        assert result.total_bytes == 300
        assert len(fake_server.uploads()) == 2

    def test_modified_file_is_uploaded_again(self, engine, fake_server, tmp_path):
        """A file with a newer mtime is re-uploaded, the others are skipped."""
        _write(tmp_path / "a.txt", 100)
        _write(tmp_path / "b.txt", 100)
        engine.sync_folder(tmp_path, "docs")

        _write(tmp_path / "a.txt", 150, mtime_s=1_700_000_100.0)
        result = engine.sync_folder(tmp_path, "docs")

        assert result.uploaded == 1
        assert result.skipped == 1
        assert result.total_bytes == 250
        assert fake_server.uploads()[-1] == "a.txt"

    def test_failed_file_does_not_stop_batch(self, engine, fake_server, tmp_path):
        """A failing upload is counted and the remaining files still go up."""
        for name in ("a.txt", "b.txt", "c.txt", "d.txt"):
            _write(tmp_path / name, 10)
        fake_server.fail_paths.add("b.txt")

        result = engine.sync_folder(tmp_path, "docs")

        assert result.uploaded == 3
        assert result.failed == 1
        assert set(fake_server.uploads()) == {"a.txt", "b.txt", "c.txt", "d.txt"}
        assert "b.txt" not in fake_server.metadata("docs")["files"]

    def test_failed_file_is_retried_next_run(self, engine, fake_server, tmp_path):
        """A file that failed is selected again on the next run."""
        _write(tmp_path / "a.txt", 10)
        fake_server.fail_paths.add("a.txt")
        engine.sync_folder(tmp_path, "docs")

        fake_server.fail_paths.clear()
        result = engine.sync_folder(tmp_path, "docs")

        assert result.uploaded == 1
        assert result.failed == 0

    def test_oversized_file_counts_as_skipped(self, client, no_sleep, tmp_path):
        """Files above the size limit are never uploaded."""
        engine = SyncEngine(client, max_file_size=50, sleep=no_sleep)
        _write(tmp_path / "small.txt", 50)
        _write(tmp_path / "big.txt", 51)

        result = engine.sync_folder(tmp_path, "docs")

        assert result.uploaded == 1
        assert result.skipped == 1

    def test_metadata_fetch_failure_starts_fresh(self, engine, fake_server, tmp_path):
        """An unreachable metadata document is treated as empty."""
        _write(tmp_path / "a.txt", 10)
        fake_server.fail_metadata_get = True

        result = engine.sync_folder(tmp_path, "docs")

        assert result.uploaded == 1

    def test_metadata_save_failure_keeps_results(self, engine, fake_server, tmp_path):
        """A failed metadata save does not turn uploads into failures."""
        _write(tmp_path / "a.txt", 10)
        _write(tmp_path / "b.txt", 10)
        fake_server.fail_metadata_put = True

        result = engine.sync_folder(tmp_path, "docs")

        assert result.uploaded == 2
        assert result.failed == 0
        assert result.total_files == 2

    def test_pacing_between_uploads_only(self, engine, no_sleep, tmp_path):
        """The pacing delay runs between uploads, not after the last one."""
        for name in ("a.txt", "b.txt", "c.txt"):
            _write(tmp_path / name, 10)

        engine.sync_folder(tmp_path, "docs")

        assert no_sleep.call_count == 2
        no_sleep.assert_called_with(1.0)

    def test_progress_reported_before_each_upload(self, engine, tmp_path):
        """Progress callback gets a monotonic done counter and the file path."""
        for name in ("a.txt", "b.txt"):
            _write(tmp_path / name, 10)
        calls = []

        engine.sync_folder(tmp_path, "docs", lambda d, t, p: calls.append((d, t, p)))

        assert [c[0] for c in calls] == [0, 1]
        assert all(c[1] == 2 for c in calls)
        assert sorted(c[2] for c in calls) == ["a.txt", "b.txt"]

    def test_undecodable_file_name_does_not_abort_folder(
        self, engine, fake_server, tmp_path
    ):
        """A name that is not valid UTF-8 is skipped; the rest is backed up."""
        _write(tmp_path / "good.txt", 10)
        _write(tmp_path / os.fsdecode(b"bad\xff.txt"), 10)
        _write(tmp_path / "zz.txt", 10)

        result = engine.sync_all([FolderConfig(tmp_path, "docs")])

        assert result.uploaded == 2
        assert result.failed == 0
        assert sorted(fake_server.uploads()) == ["good.txt", "zz.txt"]
        assert set(fake_server.metadata("docs")["files"]) == {"good.txt", "zz.txt"}

    def test_root_metadata_name_is_not_uploaded(self, engine, fake_server, tmp_path):
        """A local metadata.json at the root would clash with the document."""
        _write(tmp_path / "metadata.json", 10)
        _write(tmp_path / "sub" / "metadata.json", 10)

        result = engine.sync_folder(tmp_path, "docs")

        assert result.uploaded == 1
        assert result.skipped == 1
        assert fake_server.uploads() == ["sub/metadata.json"]
        assert set(fake_server.metadata("docs")["files"]) == {"sub/metadata.json"}

    def test_missing_directory_raises(self, engine, tmp_path):
        """A missing local directory is a configuration error."""
        with pytest.raises(BackupBoxConfigError, match="does not exist"):
            engine.sync_folder(tmp_path / "missing", "docs")


class TestSyncAll:
    """Test SyncEngine.sync_all orchestration."""

    @pytest.fixture
    def engine(self, client, no_sleep):
        return SyncEngine(client, sleep=no_sleep)

    def test_folders_processed_in_order(self, engine, fake_server, tmp_path):
        """Folders are synchronized one after another in list order."""
        first = tmp_path / "first"
        second = tmp_path / "second"
        _write(first / "1.txt", 10)
        _write(second / "2.txt", 10)

        engine.sync_all(
            [FolderConfig(first, "first"), FolderConfig(second, "second")]
        )

        assert fake_server.uploads() == ["1.txt", "2.txt"]
        puts = [r.url.path for r in fake_server.requests if r.method == "PUT"]
        assert puts.index("/api/backupbox/data/backups/first/metadata.json") < (
            puts.index("/api/backupbox/data/backups/second/2.txt")
        )

    def test_failing_folder_is_isolated(self, engine, tmp_path):
        """A folder that raises counts as one failure; the others still run."""
        one = tmp_path / "one"
        three = tmp_path / "three"
        _write(one / "a.txt", 10)
        _write(one / "b.txt", 10)
        _write(three / "c.txt", 30)
        configs = [
            FolderConfig(one, "one"),
            FolderConfig(tmp_path / "gone", "two"),
            FolderConfig(three, "three"),
        ]

        result = engine.sync_all(configs)

        assert result.uploaded == 3
        assert result.skipped == 0
        assert result.failed == 1

    def test_totals_are_summed_across_folders(self, engine, tmp_path):
        """Aggregate totals are the sum of every folder's remote state."""
        one = tmp_path / "one"
        two = tmp_path / "two"
        _write(one / "a.txt", 10)
        _write(two / "b.txt", 20)
        _write(two / "c.txt", 30)

        result = engine.sync_all([FolderConfig(one, "one"), FolderConfig(two, "two")])

        assert result.total_files == 3
        assert result.total_bytes == 60

    def test_unexpected_exception_counts_as_failure(self, engine, tmp_path):
        """Any exception from a folder is absorbed by the orchestrator."""
        sync_folder = Mock(side_effect=[RuntimeError("boom"), SyncResult(uploaded=2)])
        with patch.object(engine, "sync_folder", sync_folder):
            result = engine.sync_all(
                [FolderConfig(tmp_path, "a"), FolderConfig(tmp_path, "b")]
            )

        assert result.failed == 1
        assert result.uploaded == 2

    def test_empty_config_list(self, engine):
        """No folders yields an empty result."""
        assert engine.sync_all([]) == SyncResult()


class TestSyncResult:
    """Tests for SyncResult helpers."""

    def test_add_sums_every_counter(self):
        total = SyncResult(uploaded=1, skipped=2, total_bytes=5, total_files=3)
        total.add(SyncResult(uploaded=4, failed=1, total_bytes=7, total_files=2))

        assert total == SyncResult(
            uploaded=5, skipped=2, failed=1, total_bytes=12, total_files=5
        )

    def test_from_event_payload(self):
        """Missing keys in a done payload default to zero."""
        result = SyncResult.from_dict({"uploaded": 3, "totalBytes": 10})

        assert result == SyncResult(uploaded=3, total_bytes=10)
