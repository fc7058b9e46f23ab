from unittest import mock

import pytest

from mediaorganizer.progress import ProgressReporter, format_duration

_UNITS = {"h": 3600, "m": 60, "s": 1}


def _to_seconds(text):
    return sum(int(part[:-1]) * _UNITS[part[-1]] for part in text.split())


class _Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.mark.parametrize("seconds", [0, 1, 59, 60, 61, 3599, 3600, 86399, 90061])
def test_format_duration_round_trip(seconds):
    assert _to_seconds(format_duration(seconds)) == seconds


@pytest.mark.parametrize(
    "seconds, parts",
    [(0, 1), (59, 1), (60, 2), (3599, 2), (3600, 3), (100000, 3)],
)
def test_format_duration_component_count(seconds, parts):
    assert len(format_duration(seconds).split()) == parts


def test_format_duration_pinned_values():
    assert format_duration(0) == "0s"
    assert format_duration(90) == "1m 30s"
    assert format_duration(3661) == "1h 1m 1s"


def test_format_duration_rounds_to_nearest_second():
    assert format_duration(59.4) == format_duration(59)
    assert format_duration(59.6) == format_duration(60)
    assert format_duration(0.5) == format_duration(1)


def test_zero_total_prints_processed_count(capsys):
    clock = _Clock(100.0)
    with mock.patch("time.monotonic", clock):
        reporter = ProgressReporter(0)
        reporter.increment(3)
        assert capsys.readouterr().out == ""
        reporter.print_progress()
    assert capsys.readouterr().out == f"Processed {3} files\n"


def test_increment_accumulates():
    clock = _Clock(50.0)
    with mock.patch("time.monotonic", clock):
        reporter = ProgressReporter(10)
        reporter.increment()
        reporter.increment(4)
    assert reporter.processed == 5


def test_output_is_rate_limited(capsys):
    clock = _Clock(100.0)
    with mock.patch("time.monotonic", clock):
        reporter = ProgressReporter(10)
        clock.now = 100.5
        reporter.increment()
        assert capsys.readouterr().out == ""

        clock.now = 101.5
        reporter.increment()
        first = capsys.readouterr().out
        assert first.startswith(f"Progress: {2}/{10} (")

        clock.now = 101.9
        reporter.increment()
        assert capsys.readouterr().out == ""


def test_progress_line_parts(capsys):
    clock = _Clock(10.0)
    with mock.patch("time.monotonic", clock):
        reporter = ProgressReporter(4)
        reporter.processed = 4
        clock.now = 130.0
        reporter.print_progress()
    out = capsys.readouterr().out
    elapsed_text = out.split("Elapsed: ")[1].split(",")[0]
    eta_text = out.split("ETA: ")[1].strip()
    assert out.startswith(f"Progress: {4}/{4} (")
    assert _to_seconds(elapsed_text) == 120
    assert _to_seconds(eta_text) == 0


def test_total_can_be_changed(capsys):
    clock = _Clock(0.0)
    with mock.patch("time.monotonic", clock):
        reporter = ProgressReporter(0)
        reporter.total = 8
        reporter.processed = 2
        clock.now = 4.0
        reporter.print_progress()
    out = capsys.readouterr().out
    assert out.startswith(f"Progress: {2}/{8} (")
    assert _to_seconds(out.split("Elapsed: ")[1].split(",")[0]) == 4
    assert _to_seconds(out.split("ETA: ")[1].strip()) == 12