"""Tests for the transport and loop scheduling."""

import pytest

from psychoscope.audio.context import AudioContext


@pytest.fixture
def ctx():
    # 1000 Hz keeps frame arithmetic readable
    return AudioContext(sample_rate=1000, lookahead=0.1)


class TestLoops:
    def test_ticks_dispatched_with_lookahead(self, ctx):
        transport = ctx.transport
        times = []
        transport.schedule_repeat(times.append, 0.25)
        transport.start()

        ctx.render(100)  # horizon 0.1 + 0.1
        assert times == [0.0]
        ctx.render(100)  # horizon 0.3
        assert times == [0.0, 0.25]

    def test_callbacks_get_context_time(self, ctx):
        ctx.render(500)
        times = []
        ctx.transport.schedule_repeat(times.append, "4n", start=0.2)
        ctx.transport.start()
        ctx.render(500)
        # Transport 0 is context 0.5; 120 bpm quarter = 0.5 s
        assert times == [pytest.approx(0.7)]

    def test_interval_follows_bpm(self, ctx):
        transport = ctx.transport
        transport.bpm = 60
        times = []
        transport.schedule_repeat(times.append, "4n")
        transport.start()
        ctx.render(2000)
        assert times == [pytest.approx(0.0), pytest.approx(1.0), pytest.approx(2.0)]

    def test_nothing_fires_while_stopped(self, ctx):
        times = []
        ctx.transport.schedule_repeat(times.append, 0.1)
        ctx.render(1000)
        assert times == []

    def test_stop_rewinds(self, ctx):
        transport = ctx.transport
        loop = transport.schedule_repeat(lambda t: None, 0.1)
        transport.start()
        ctx.render(500)
        assert transport.seconds == pytest.approx(0.5)
        transport.stop()
        assert transport.seconds == 0.0
        assert loop.next_time == 0.0

    def test_dispose_removes_and_silences(self, ctx):
        transport = ctx.transport
        times = []
        loop = transport.schedule_repeat(times.append, 0.1)
        transport.start()
        ctx.render(50)
        fired = len(times)
        loop.dispose()
        ctx.render(1000)
        assert len(times) == fired
        assert loop.disposed
        assert loop not in transport.loops

    def test_disposed_loop_pending_tick_is_noop(self, ctx):
        transport = ctx.transport
        times = []
        first = transport.schedule_repeat(lambda t: second.dispose(), 0.5)
        second = transport.schedule_repeat(times.append, 0.5)
        transport.start()
        ctx.render(10)
        assert first.iterations == 1
        assert times == []

    def test_iterations_count(self, ctx):
        loop = ctx.transport.schedule_repeat(lambda t: None, 0.1)
        ctx.transport.start()
        ctx.render(350)  # horizon 0.45 -> ticks 0.0..0.4
        assert loop.iterations == 5

    @pytest.mark.parametrize("interval", [0, "bogus"])
    def test_bad_interval_rejected(self, ctx, interval):
        with pytest.raises(ValueError):
            ctx.transport.schedule_repeat(lambda t: None, interval)

    def test_negative_start_rejected(self, ctx):
        with pytest.raises(ValueError):
            ctx.transport.schedule_repeat(lambda t: None, 0.1, start=-1.0)

    def test_bpm_validated(self, ctx):
        with pytest.raises(ValueError):
            ctx.transport.bpm = 0
