"""Tests for argument parsing and command dispatch in __main__."""
from unittest.mock import patch

import pytest

from attendance.__main__ import build_parser, main


class TestParser:
    def test_scan_takes_subject_id(self):
        args = build_parser().parse_args(["scan", "17"])
        assert args.command == "scan"
        assert args.subject_id == "17"

    def test_show_unsynced_flag(self):
        assert build_parser().parse_args(["show", "--unsynced"]).unsynced is True
        assert build_parser().parse_args(["show"]).unsynced is False

    def test_wipe_yes_flag(self):
        assert build_parser().parse_args(["wipe", "--yes"]).yes is True

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestDispatch:
    def test_scan(self):
        with patch("attendance.deps.get_recorder") as get_recorder, \
             patch("attendance.scripts.console.run_scan", return_value=0) as run_scan:
            assert main(["scan", "17"]) == 0
        run_scan.assert_called_once_with(get_recorder.return_value, "17")

    def test_sync_exit_code_passes_through(self):
        with patch("attendance.deps.get_coordinator"), \
             patch("attendance.scripts.console.run_sync", return_value=2):
            assert main(["sync"]) == 2

    def test_wipe_forwards_yes(self):
        with patch("attendance.deps.get_event_log") as get_event_log, \
             patch("attendance.scripts.console.run_wipe", return_value=0) as run_wipe:
            main(["wipe", "--yes"])
        run_wipe.assert_called_once_with(get_event_log.return_value, assume_yes=True)

    def test_show_forwards_unsynced(self):
        with patch("attendance.deps.get_event_log") as get_event_log, \
             patch("attendance.scripts.console.run_show", return_value=0) as run_show:
            main(["show", "--unsynced"])
        run_show.assert_called_once_with(get_event_log.return_value, unsynced_only=True)
