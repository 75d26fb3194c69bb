"""Tests for clock line classification, the tree scan, ClockState and
ClockStateWatcher.

The watcher is driven with poll_once() / trigger() / stop(); no test waits
for the real poll interval.
"""

from __future__ import annotations

import asyncio
import os

import pytest

from focusgate.policy.clock import (
    ClockState,
    ClockStateWatcher,
    file_has_open_clock,
    is_open_clock_line,
    is_tracked_file,
    scan_clock_tree,
)

OPEN_LINE = "CLOCK: [2024-01-01 09:00]"
CLOSED_LINE = "CLOCK: [2024-01-01 09:00]--[2024-01-01 10:00] => 1:00"


def _write(path, *lines: str) -> str:
    os.makedirs(os.path.dirname(str(path)), exist_ok=True)
    with open(path, "w") as fh:
        fh.write("\n".join(lines) + "\n")
    return str(path)


# ─── Line classification ──────────────────────────────────────────────────────


class TestIsOpenClockLine:
    def test_open_marker(self):
        assert is_open_clock_line(OPEN_LINE)

    def test_indented_org_open_marker(self):
        assert is_open_clock_line("    CLOCK: [2024-01-01 Mon 09:00]")

    def test_closed_marker(self):
        assert not is_open_clock_line(CLOSED_LINE)

    def test_closed_org_marker_with_spacing(self):
        assert not is_open_clock_line(
            "  CLOCK: [2024-01-01 Mon 09:00]--[2024-01-01 Mon 10:30] =>  1:30"
        )

    def test_plain_text(self):
        assert not is_open_clock_line("* TODO write report")

    def test_dashes_without_duration_is_open(self):
        assert is_open_clock_line("CLOCK: [2024-01-01 09:00]--[2024-01-01 10:00]")

    def test_lowercase_token_is_not_a_marker(self):
        assert not is_open_clock_line("clock: [2024-01-01 09:00]")


class TestIsTrackedFile:
    @pytest.mark.parametrize(
        "path",
        ["work.org", "archive.org_archive", "a.org.bak", "/home/me/notes.org/journal.txt"],
    )
    def test_tracked(self, path):
        assert is_tracked_file(path)

    @pytest.mark.parametrize("path", ["notes.txt", "org", "/home/me/org/README.md"])
    def test_not_tracked(self, path):
        assert not is_tracked_file(path)


# ─── Tree scan ────────────────────────────────────────────────────────────────


class TestScanClockTree:
    def test_open_marker_sets_true(self, tmp_path):
        _write(tmp_path / "work.org", "* Task", OPEN_LINE)
        assert scan_clock_tree(str(tmp_path)) is True

    def test_closed_marker_sets_false(self, tmp_path):
        _write(tmp_path / "work.org", "* Task", CLOSED_LINE)
        assert scan_clock_tree(str(tmp_path)) is False

    def test_nested_directory_is_scanned(self, tmp_path):
        _write(tmp_path / "a" / "b" / "deep.org", OPEN_LINE)
        assert scan_clock_tree(str(tmp_path)) is True

    def test_open_marker_in_untracked_file_ignored(self, tmp_path):
        _write(tmp_path / "notes.txt", OPEN_LINE)
        assert scan_clock_tree(str(tmp_path)) is False

    def test_file_under_org_directory_is_scanned(self, tmp_path):
        _write(tmp_path / "work.org" / "journal.txt", OPEN_LINE)
        assert scan_clock_tree(str(tmp_path)) is True

    def test_root_path_containing_marker_tracks_every_file(self, tmp_path):
        root = tmp_path / "notes.org"
        _write(root / "today.txt", OPEN_LINE)
        assert scan_clock_tree(str(root)) is True

    def test_directory_named_like_org_file_is_not_read(self, tmp_path):
        (tmp_path / "empty.org").mkdir()
        assert scan_clock_tree(str(tmp_path)) is False

    def test_any_file_flips_whole_tree(self, tmp_path):
        _write(tmp_path / "a.org", CLOSED_LINE)
        _write(tmp_path / "b.org", "nothing here")
        _write(tmp_path / "c.org", OPEN_LINE)
        assert scan_clock_tree(str(tmp_path)) is True

    def test_empty_directory(self, tmp_path):
        assert scan_clock_tree(str(tmp_path)) is False

    def test_missing_directory_does_not_raise(self, tmp_path):
        assert scan_clock_tree(str(tmp_path / "missing")) is False

    def test_unreadable_file_skipped(self, tmp_path, monkeypatch):
        bad = _write(tmp_path / "bad.org", OPEN_LINE)
        _write(tmp_path / "good.org", CLOSED_LINE)

        import focusgate.policy.clock as clock_module

        real = clock_module.file_has_open_clock

        def flaky(path):
            if path == bad:
                raise PermissionError(13, "Permission denied", path)
            return real(path)

        monkeypatch.setattr(clock_module, "file_has_open_clock", flaky)
        assert scan_clock_tree(str(tmp_path)) is False

    def test_file_has_open_clock_raises_oserror_for_missing(self, tmp_path):
        with pytest.raises(OSError):
            file_has_open_clock(str(tmp_path / "missing.org"))


# ─── ClockState ───────────────────────────────────────────────────────────────


class TestClockState:
    def test_defaults_false_and_never_updated(self):
        state = ClockState()
        assert state.clocking is False
        assert state.updated_at is None

    def test_publish_overwrites(self):
        state = ClockState()
        state.publish(True)
        assert state.clocking is True
        state.publish(False)
        assert state.clocking is False
        assert state.updated_at is not None


# ─── ClockStateWatcher ────────────────────────────────────────────────────────


class TestClockStateWatcher:
    @pytest.mark.asyncio
    async def test_poll_once_publishes_open_then_closed(self, tmp_path):
        _write(tmp_path / "work.org", OPEN_LINE)
        watcher = ClockStateWatcher(str(tmp_path))

        assert await watcher.poll_once() is True
        assert watcher.state.clocking is True

        _write(tmp_path / "work.org", CLOSED_LINE)
        assert await watcher.poll_once() is False
        assert watcher.state.clocking is False

    @pytest.mark.asyncio
    async def test_uses_given_state(self, tmp_path):
        _write(tmp_path / "work.org", OPEN_LINE)
        state = ClockState()
        watcher = ClockStateWatcher(str(tmp_path), state)
        await watcher.poll_once()
        assert state.clocking is True

    @pytest.mark.asyncio
    async def test_run_scans_immediately_and_on_trigger(self, tmp_path):
        _write(tmp_path / "work.org", CLOSED_LINE)
        watcher = ClockStateWatcher(str(tmp_path), interval=3600)
        task = asyncio.create_task(watcher.run())
        try:
            await _wait_for(lambda: watcher.cycles >= 1)
            assert watcher.state.clocking is False

            _write(tmp_path / "work.org", OPEN_LINE)
            watcher.trigger()
            await _wait_for(lambda: watcher.cycles >= 2)
            assert watcher.state.clocking is True
        finally:
            watcher.stop()
            await asyncio.wait_for(task, timeout=5)

    @pytest.mark.asyncio
    async def test_stop_interrupts_wait(self, tmp_path):
        watcher = ClockStateWatcher(str(tmp_path), interval=3600)
        task = asyncio.create_task(watcher.run())
        await _wait_for(lambda: watcher.cycles >= 1)

        watcher.stop()
        await asyncio.wait_for(task, timeout=5)
        assert task.done()

    @pytest.mark.asyncio
    async def test_result_discarded_after_stop(self, tmp_path):
        _write(tmp_path / "work.org", OPEN_LINE)
        watcher = ClockStateWatcher(str(tmp_path))
        watcher.stop()
        assert await watcher.poll_once() is None
        assert watcher.state.clocking is False

    @pytest.mark.asyncio
    async def test_scan_error_does_not_kill_loop(self, tmp_path, monkeypatch):
        watcher = ClockStateWatcher(str(tmp_path), interval=3600)
        calls = []

        def boom():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("walk exploded")
            return True

        monkeypatch.setattr(watcher, "scan", boom)
        task = asyncio.create_task(watcher.run())
        try:
            await _wait_for(lambda: len(calls) >= 1)
            watcher.trigger()
            await _wait_for(lambda: watcher.cycles >= 1)
            assert watcher.state.clocking is True
        finally:
            watcher.stop()
            await asyncio.wait_for(task, timeout=5)


async def _wait_for(predicate, timeout: float = 5.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)
