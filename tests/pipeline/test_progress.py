"""Tests for progress reporting."""

import logging

import pytest

from chat_dumpster.pipeline import PipelineStage, ProgressReporter, STAGE_CHECKPOINTS


class TestProgressReporter:
    """Test event emission and monotonic progress."""

    def test_enter_uses_checkpoints(self):
        events = []
        reporter = ProgressReporter(events.append)
        for stage in STAGE_CHECKPOINTS:
            reporter.enter(stage, stage.value)
        assert [e.progress for e in events] == [0, 0, 10, 30, 40, 70, 85, 95, 100]
        assert reporter.stage is PipelineStage.COMPLETED

    def test_progress_never_decreases(self):
        reporter = ProgressReporter()
        reporter.enter(PipelineStage.DETECTING_LAYOUT, "layout")
        event = reporter.update(PipelineStage.EXTRACTING, 5, "late update")
        assert event.progress == 30

    def test_progress_capped_at_100(self):
        assert ProgressReporter().update(PipelineStage.COMPLETED, 150, "done").progress == 100

    def test_fail_keeps_last_percentage(self):
        reporter = ProgressReporter()
        reporter.enter(PipelineStage.RESOLVING_ASSETS, "assets")
        event = reporter.fail("boom")
        assert event.stage is PipelineStage.FAILED
        assert event.progress == 70
        assert reporter.current == 70

    def test_history_without_callback(self):
        reporter = ProgressReporter()
        reporter.enter(PipelineStage.INITIALIZING, "start")
        assert len(reporter.events) == 1
        assert reporter.events[0].message == "start"

    def test_verbose_logs_at_info(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="chat_dumpster.pipeline.progress"):
            ProgressReporter(verbose=True).enter(PipelineStage.EXTRACTING, "Extracting archive")
            ProgressReporter(verbose=False).enter(PipelineStage.EXTRACTING, "quiet")

        levels = [r.levelno for r in caplog.records]
        assert levels == [logging.INFO, logging.DEBUG]
        assert "[extracting] 10% - Extracting archive" in caplog.records[0].getMessage()

    def test_stage_values_are_strings(self):
        assert PipelineStage.DUMPING_CONVERSATIONS == "dumping-conversations"


class TestFormatTime:
    """Test elapsed time formatting."""

    @pytest.mark.parametrize("seconds,expected", [
        (0, "0s"),
        (0.4, "0s"),
        (59, "59s"),
        (60, "1m"),
        (3725, "1h 2m 5s"),
        (7200, "2h"),
    ])
    def test_format(self, seconds, expected):
        assert ProgressReporter._format_time(seconds) == expected
