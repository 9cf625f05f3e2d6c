"""
Tests for the pipeline file lock.
"""
import os

import pytest

from pipeline.control import PipelineBusyError, PipelineController


@pytest.fixture
def lock_path(tmp_path):
    return str(tmp_path / "matching_pipeline.lock")


class TestPipelineController:

    def test_acquire_writes_owner(self, lock_path):
        controller = PipelineController(lock_path)

        assert controller.acquire_lock("batch", {'trigger': "cron"})
        info = controller.get_lock_info()
        controller.release_lock()

        assert info['run'] == "batch"
        assert info['pid'] == os.getpid()
        assert info['trigger'] == "cron"

    def test_second_holder_is_refused(self, lock_path):
        first = PipelineController(lock_path)
        second = PipelineController(lock_path)

        assert first.acquire_lock("batch")
        try:
            assert second.acquire_lock("incremental") is False
        finally:
            second.release_lock()
            first.release_lock()

        assert second.acquire_lock("incremental")
        second.release_lock()

    def test_release_clears_owner(self, lock_path):
        controller = PipelineController(lock_path)
        controller.acquire_lock("digest")
        controller.release_lock()

        assert controller.get_lock_info() is None

    def test_missing_or_garbled_file(self, lock_path):
        assert PipelineController(lock_path).get_lock_info() is None
        with open(lock_path, "w") as f:
            f.write("{not json")
        assert PipelineController(lock_path).get_lock_info() is None

    def test_hold_context(self, lock_path):
        with PipelineController(lock_path).hold("batch"):
            with pytest.raises(PipelineBusyError) as excinfo:
                with PipelineController(lock_path).hold("incremental"):
                    pass
            assert excinfo.value.owner['run'] == "batch"
            assert "batch" in str(excinfo.value)

        with PipelineController(lock_path).hold("incremental"):
            pass

    def test_release_without_acquire_is_noop(self, lock_path):
        PipelineController(lock_path).release_lock()
