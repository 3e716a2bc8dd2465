import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from stockflow.engine import Model, run_batched, summarise
from stockflow.engine.runner import default_batch_size


def _counter() -> Model:
    model = Model()
    model.add_stock("S", 0)
    model.add_flow("In", None, "S", 2)
    model.record_state()
    return model


def test_default_batch_size():
    assert default_batch_size(0) == 1
    assert default_batch_size(99) == 1
    assert default_batch_size(1000) == 10


def test_run_batched_reports_progress():
    model = _counter()
    seen = []
    taken = run_batched(model, 10, 1.0, batch_size=4, on_batch=lambda m, done: seen.append(done))
    assert taken == 10
    assert seen == [4, 8, 10]
    assert model.stocks["S"].value == 20.0


def test_run_batched_stops_on_termination(population_model):
    seen = []
    taken = run_batched(population_model, 1000, batch_size=7, on_batch=lambda m, done: seen.append(done))
    assert population_model.is_terminated
    assert taken == population_model.step_count
    assert seen[-1] == taken
    assert run_batched(population_model, 10) == 0


def test_summarise_statistics():
    model = _counter()
    model.run(4)
    stats = summarise(model)["S"]
    assert stats == {"min": 0.0, "max": 8.0, "last": 8.0, "avg": pytest.approx(4.0)}


def test_summarise_over_given_snapshots_and_empty_history():
    model = _counter()
    model.run(4)
    tail = list(model.history)[-2:]
    assert summarise(model, tail)["S"]["min"] == 6.0
    assert summarise(Model()) == {}
