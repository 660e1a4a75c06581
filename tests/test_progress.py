import asyncio

from framechain.config.schema import RunConfig
from framechain.pipeline.progress import ProgressReporter, Throttle


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_throttle_delivers_leading_call_and_holds_calls_inside_window():
    clock = FakeClock()
    calls = []
    throttle = Throttle(lambda message, percent: calls.append((message, percent)), 0.1, clock)

    throttle("a", 1)
    clock.now = 0.05
    throttle("b", 2)
    throttle("c", 3)

    assert calls == [("a", 1)]
    assert throttle.pending == ("c", 3)


def test_throttle_delivers_after_window_elapses():
    clock = FakeClock()
    calls = []
    throttle = Throttle(lambda message, percent: calls.append((message, percent)), 0.1, clock)

    throttle("a", 1)
    clock.now = 0.05
    throttle("b", 2)
    clock.now = 0.2
    throttle("c", 3)

    assert calls == [("a", 1), ("c", 3)]
    assert throttle.pending is None


def test_flush_delivers_trailing_call_once():
    clock = FakeClock()
    calls = []
    throttle = Throttle(lambda message, percent: calls.append((message, percent)), 0.1, clock)

    throttle("a", 1)
    throttle("b", 2)
    throttle.flush()
    throttle.flush()

    assert calls == [("a", 1), ("b", 2)]


def test_reporter_finish_always_delivers_final_message():
    clock = FakeClock()
    calls = []
    reporter = ProgressReporter(
        lambda message, percent: calls.append((message, percent)),
        RunConfig(progress_interval=100.0),
        clock=clock,
    )

    reporter.report("Actions initialization", 0)
    reporter.report("Actions are running", 50)
    reporter.finish()

    assert calls == [("Actions initialization", 0), ("Finalizing", 100)]


def test_reporter_pause_reports_before_sleeping():
    calls = []
    reporter = ProgressReporter(
        lambda message, percent: calls.append((message, percent)),
        RunConfig(progress_interval=0.0),
    )

    asyncio.run(reporter.pause("Committing handled objects", 100, 0.0))

    assert calls == [("Committing handled objects", 100)]


def test_reporter_pause_delivers_held_update_and_staged_message():
    calls = []
    reporter = ProgressReporter(
        lambda message, percent: calls.append((message, percent)),
        RunConfig(progress_interval=0.05),
    )

    reporter.report("Actions are running", 40)
    reporter.report("Actions are running", 80)
    asyncio.run(reporter.pause("Committing handled objects", 100, 0.0))

    assert calls == [
        ("Actions are running", 40),
        ("Actions are running", 80),
        ("Committing handled objects", 100),
    ]


def test_throttle_remaining_counts_down_the_window():
    clock = FakeClock()
    throttle = Throttle(lambda message, percent: None, 0.1, clock)

    assert throttle.remaining() == 0.0
    throttle("a", 1)
    clock.now = 0.04
    assert abs(throttle.remaining() - 0.06) < 1e-9
    clock.now = 0.5
    assert throttle.remaining() == 0.0
