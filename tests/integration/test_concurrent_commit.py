"""
Integration tests for concurrent installs across processes.

These tests use multiprocessing to verify that promotion by rename leaves
exactly one install when several processes race for the same version, and
that leftovers of interrupted processes never block a later acquisition.
"""

import multiprocessing
import os
import time
from pathlib import Path

import pytest

from godl.core.cache_store import SENTINEL_NAME, CacheStatus, CacheStore
from godl.toolchain.acquisition import Acquirer

GO_URL = "https://dl.google.com/go/go1.19.5.linux-amd64.tar.gz"


def worker_commit(root, version, marker, start_event, result_queue):
    """
    Worker that prepares a complete tree and races to commit it.

    Args:
        root: Cache root
        version: Version to commit
        marker: Text written to <tree>/marker to identify the winner
        start_event: Released once every worker has its scratch tree ready
        result_queue: Queue to communicate results
    """
    try:
        store = CacheStore(Path(root))
        scratch = store.new_scratch(version)
        (scratch / "bin").mkdir()
        (scratch / "bin" / "go").write_text("#!/bin/sh\n")
        (scratch / "marker").write_text(marker)

        start_event.wait(timeout=10)
        path = store.commit(version, scratch, digest="ab" * 32, probe="bin/go")
        result_queue.put(("committed", marker, str(path)))
    except Exception as e:
        result_queue.put(("error", marker, str(e)))


@pytest.mark.slow
class TestConcurrentCommit:
    """Test commit races between processes."""

    def test_exactly_one_install(self, cache_root):
        """Test all racers succeed and observe the single winning tree."""
        start_event = multiprocessing.Event()
        result_queue = multiprocessing.Queue()
        workers = [
            multiprocessing.Process(
                target=worker_commit,
                args=(str(cache_root), "go1.19.5", f"w{i}", start_event, result_queue),
            )
            for i in range(4)
        ]

        for p in workers:
            p.start()
        time.sleep(0.5)
        start_event.set()

        results = [result_queue.get(timeout=30) for _ in workers]
        for p in workers:
            p.join(timeout=10)

        assert all(kind == "committed" for kind, _, _ in results), results
        assert {path for _, _, path in results} == {str(cache_root / "go1.19.5")}

        store = CacheStore(cache_root)
        assert store.lookup("go1.19.5", probe="bin/go").is_ready
        winner = (cache_root / "go1.19.5" / "marker").read_text()
        assert winner in {marker for _, marker, _ in results}
        assert list(store.scratch_root.iterdir()) == []


class TestInterruptedAcquisition:
    """Test recovery from processes killed mid-acquisition."""

    def test_orphans_do_not_block_install(
        self, store, fast_config, linux_amd64, release_server, go_tar_gz
    ):
        """Test a dead process's partial download and scratch tree are ignored."""
        orphan = store.scratch_root / "go1.19.5.99999-deadbeef"
        (orphan / "bin").mkdir(parents=True)
        partial = store.scratch_root / "go1.19.5.linux-amd64.tar.gz.99999-deadbeef"
        partial.write_bytes(go_tar_gz[:100])
        assert store.lookup("go1.19.5").status is CacheStatus.INSTALLING

        release_server(GO_URL, go_tar_gz)
        result = Acquirer(store, fast_config, platform_info=linux_amd64).acquire(
            "go1.19.5"
        )

        assert store.lookup("go1.19.5", probe="bin/go").is_ready
        assert (result.path / SENTINEL_NAME).is_file()
        # Recent orphans might belong to a live process and are left alone.
        assert orphan.exists()

    def test_stale_orphans_removed(
        self, store, fast_config, linux_amd64, release_server, go_tar_gz
    ):
        orphan = store.scratch_root / "go1.19.5.99999-deadbeef"
        (orphan / "bin").mkdir(parents=True)
        old = time.time() - 48 * 3600
        os.utime(orphan, (old, old))

        release_server(GO_URL, go_tar_gz)
        Acquirer(store, fast_config, platform_info=linux_amd64).acquire("go1.19.5")

        assert not orphan.exists()

    def test_half_extracted_install_recovered(
        self, store, fast_config, linux_amd64, release_server, go_tar_gz
    ):
        """Test an install dir without sentinel is treated as corrupt, not ready."""
        partial = store.root / "go1.19.5"
        (partial / "bin").mkdir(parents=True)
        (partial / "bin" / "go").write_text("truncated")
        assert store.lookup("go1.19.5", probe="bin/go").status is CacheStatus.CORRUPT

        release_server(GO_URL, go_tar_gz)
        result = Acquirer(store, fast_config, platform_info=linux_amd64).acquire(
            "go1.19.5"
        )

        assert not result.was_cached
        assert (result.path / "VERSION").read_text() == "go1.19.5\n"
