import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from stockflow.dsl import parse_dsl
from stockflow.engine import DelayState, Model
from stockflow.engine.delays import delay, delay_gradual, smooth


def test_smooth_starts_at_input_and_converges_monotonically():
    state = DelayState("SMOOTH")
    assert smooth(state, 0.0, 4.0, time=0.0, dt=1.0) == 0.0

    previous = 0.0
    for step in range(1, 200):
        value = smooth(state, 10.0, 4.0, time=float(step), dt=1.0)
        assert previous <= value <= 10.0
        previous = value
    assert abs(previous - 10.0) < 1e-6


def test_smooth_recurrence():
    state = DelayState("SMOOTH")
    smooth(state, 0.0, 4.0, time=0.0, dt=1.0)
    assert smooth(state, 10.0, 4.0, time=1.0, dt=1.0) == pytest.approx(2.5)
    assert smooth(state, 10.0, 4.0, time=2.0, dt=1.0) == pytest.approx(4.375)


def test_smooth_step_larger_than_time_constant_follows_recurrence():
    state = DelayState("SMOOTH")
    smooth(state, 0.0, 1.0, time=0.0, dt=2.0)
    # 0 + (10 - 0) * (2 / 1)
    assert smooth(state, 10.0, 1.0, time=2.0, dt=2.0) == pytest.approx(20.0)


def test_smooth_buffer_is_bounded_by_retention():
    state = DelayState("SMOOTH")
    for step in range(1000):
        smooth(state, 1.0, 2.0, time=step * 0.1, dt=0.1)
    assert state.samples[0][0] >= 99.9 - 5 * 2.0 - 1e-9


def test_smooth_without_positive_time_constant_passes_through():
    state = DelayState("SMOOTH")
    smooth(state, 1.0, 0.0, time=0.0, dt=1.0)
    assert smooth(state, 7.0, 0.0, time=1.0, dt=1.0) == 7.0


def test_delay_cold_start_returns_input():
    state = DelayState("DELAY")
    assert delay(state, 3.0, 2.0, time=0.0) == 3.0
    assert delay(state, 4.0, 2.0, time=1.0) == 4.0


def test_delay_interpolates_between_samples():
    state = DelayState("DELAY")
    outputs = [delay(state, float(t), 2.0, time=float(t)) for t in range(4)]
    assert outputs == [0.0, 1.0, 0.0, 1.0]
    assert delay(state, 3.5, 2.0, time=3.5) == pytest.approx(1.5)


def test_delay_reaches_steady_state_exactly():
    state = DelayState("DELAY")
    results = {}
    for k in range(60):
        t = k * 0.25
        results[t] = delay(state, 0.0 if t < 5 else 7.0, 2.0, time=t)
    assert results[6.0] == 0.0
    assert all(value == 7.0 for t, value in results.items() if t >= 7.0)


def test_long_delay_with_small_step_keeps_its_lag():
    state = DelayState("DELAY")
    value = 0.0
    for k in range(30_000):
        t = k * 0.001
        value = delay(state, t, 20.0, time=t)
    assert value == pytest.approx(29.999 - 20.0, abs=1e-6)
    # Only the bracket around the target time onward is retained.
    assert state.samples[0][0] <= 9.999 + 1e-9
    assert len(state.samples) <= 20_002


def test_long_delay_in_a_model():
    model = parse_dsl(
        """
        stock Clock {
          initial: 0
        }
        flow Tick {
          from: source
          to: Clock
          rate: 1
        }
        """
    )
    lagged = model.compile("DELAY(TIME, 20)")
    value = lagged()
    for _ in range(30_000):
        model.step(0.001)
        value = lagged()
    assert model.time == pytest.approx(30.0)
    assert value == pytest.approx(10.0, abs=1e-6)


def test_delay_gradual_cold_start_and_constant_input():
    state = DelayState("DELAY_GRADUAL")
    for k in range(60):
        t = k * 0.1
        value = delay_gradual(state, 5.0, 3.0, time=t)
        if t < 3.0 - 1e-9:
            assert value == 5.0
        else:
            assert value == pytest.approx(5.0)


def test_delay_gradual_centres_on_the_delayed_time():
    state = DelayState("DELAY_GRADUAL")
    value = 0.0
    for k in range(201):
        t = k * 0.1
        value = delay_gradual(state, t, 3.0, time=t)
    assert value == pytest.approx(17.0, abs=0.05)
    assert state.samples[0][0] >= 20.0 - 4 * 3.0 - 1e-6


def test_model_delay_in_a_flow():
    model = parse_dsl(
        """
        stock Signal {
          initial: 0
        }
        stock Out {
          initial: 0
        }
        flow Ramp {
          from: source
          to: Signal
          rate: TIME < 5 ? 0 : 1
        }
        flow Lagged {
          from: source
          to: Out
          rate: DELAY(Signal, 2)
        }
        """
    )
    model.run(20, dt=0.5)
    # Out integrates the lagged Signal, which stays zero until t >= 7.
    history = {round(s.time, 6): s.values for s in model.history}
    assert history[7.5]["Out"] == 0.0
    assert history[10.0]["Out"] > 0.0


def test_each_call_site_keeps_its_own_buffer():
    model = Model()
    model.add_stock("S", 0)
    model.add_flow("In", None, "S", 1)
    fast = model.compile("SMOOTH(S, 1)")
    slow = model.compile("SMOOTH(S, 10)")
    for _ in range(10):
        model.step(1)
        a, b = fast(), slow()
    assert a > b
    assert len(model.delay_slots) == 2


def test_reset_clears_delay_state():
    model = Model()
    model.add_stock("S", 10)
    probe = model.compile("SMOOTH(S, 5)")
    probe()
    model.stocks["S"].value = 20
    model.step(1)
    assert probe() == pytest.approx(12.0)

    model.reset()
    assert probe() == 10.0
