"""Stock-and-flow model with a simultaneity-correct Euler step.

A :class:`Model` owns every piece of simulation state: stocks, flows,
constants, lookup tables, the delay arena, history and the clock. Stepping
is split into phases so that every flow rate is computed from the same
pre-step snapshot before any stock moves::

    A  rate * dt for every flow, all against the current stock values
    B  debit/credit the endpoints using only the phase-A amounts
    C  clamp each stock into [min_value, max_value]
    D  advance the clock and append one history snapshot
    E  evaluate the termination predicate on the post-step state

Nothing in the model raises for problems in the model's content; failures
end up in :attr:`Model.diagnostics` and degrade to numeric fallbacks.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from ..errors import EvaluationError
from ..expr.compiler import CompiledExpression, compile_expression
from ..observability.diagnostics import Diagnostics
from ..runtime.hooks import Callback, Hooks
from . import delays
from .delays import DelayState
from .history import DEFAULT_CAPACITY, History
from .lookup import LookupTable, LookupTable2D

logger = logging.getLogger(__name__)

EXTERNAL_NAMES = ("source", "sink")


class External(Enum):
    """Infinite source (``from`` side) or sink (``to`` side) of a flow."""

    EXTERNAL = "external"

    def __repr__(self) -> str:
        return "EXTERNAL"


EXTERNAL = External.EXTERNAL


class SimulationState(Enum):
    RUNNING = "running"
    TERMINATED = "terminated"


@dataclass
class Stock:
    """An accumulation whose value persists across steps."""

    name: str
    value: float = 0.0
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    units: Optional[str] = None

    def constrain(self) -> None:
        if self.min_value is not None and self.value < self.min_value:
            self.value = self.min_value
        if self.max_value is not None and self.value > self.max_value:
            self.value = self.max_value


Endpoint = Union[Stock, External]
Rate = Union[float, Callable[[], float]]
StockRef = Union[Stock, External, str, None]


@dataclass
class Flow:
    """Transfer between two endpoints at ``rate`` units per time unit."""

    name: str
    source: Endpoint
    target: Endpoint
    rate: Rate
    rate_text: Optional[str] = None
    units: Optional[str] = None
    dependencies: Tuple[str, ...] = ()

    @property
    def is_self_loop(self) -> bool:
        return isinstance(self.source, Stock) and self.source is self.target

    @staticmethod
    def describe_endpoint(endpoint: Endpoint, external_label: str) -> str:
        return endpoint.name if isinstance(endpoint, Stock) else external_label


@dataclass
class GraphConfig:
    """Chart declaration carried through for external renderers."""

    name: str
    title: Optional[str] = None
    variables: List[str] = field(default_factory=list)
    type: str = "line"
    y_axis_label: Optional[str] = None
    color: Optional[str] = None


class Model:
    def __init__(
        self,
        *,
        history_capacity: int = DEFAULT_CAPACITY,
        diagnostics: Optional[Diagnostics] = None,
    ):
        self.stocks: Dict[str, Stock] = {}
        self.flows: Dict[str, Flow] = {}
        self.constants: Dict[str, float] = {}
        self.lookup_tables: Dict[str, LookupTable] = {}
        self.lookup_tables_2d: Dict[str, LookupTable2D] = {}
        self.graphs: Dict[str, GraphConfig] = {}
        self.history = History(history_capacity)
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self.hooks = Hooks()

        self.time = 0.0
        self.dt = 1.0
        self.step_count = 0
        self.state = SimulationState.RUNNING
        self.termination: Optional[Callable[[], Any]] = None
        self.termination_text: Optional[str] = None

        self._initial: Dict[str, float] = {}
        self._delay_states: List[Optional[DelayState]] = []
        self._delay_labels: List[Tuple[str, str]] = []

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    def add_stock(
        self,
        name: str,
        initial: float = 0.0,
        *,
        min_value: Optional[float] = None,
        max_value: Optional[float] = None,
        units: Optional[str] = None,
    ) -> Stock:
        stock = Stock(
            name=name,
            value=float(initial),
            min_value=None if min_value is None else float(min_value),
            max_value=None if max_value is None else float(max_value),
            units=units,
        )
        self.stocks[name] = stock
        self._initial[name] = float(initial)
        return stock

    def add_flow(
        self,
        name: str,
        source: StockRef,
        target: StockRef,
        rate: Union[Rate, str],
        rate_text: Optional[str] = None,
        *,
        units: Optional[str] = None,
    ) -> Flow:
        """Register a flow.

        ``source``/``target`` accept a :class:`Stock`, a stock name, ``None``,
        :data:`EXTERNAL` or the words ``"source"``/``"sink"``. A string ``rate``
        is compiled against this model.
        """

        src = self._endpoint(source, flow=name)
        dst = self._endpoint(target, flow=name)
        dependencies: Tuple[str, ...] = ()
        if isinstance(rate, str):
            rate_text = rate_text or rate
            rate = compile_expression(rate, self, source=f"flow {name}")
        elif callable(rate):
            pass
        else:
            rate = float(rate)
        if isinstance(rate, CompiledExpression):
            dependencies = tuple(
                sorted(ref for ref in rate.references if ref in self.stocks and ref not in self.constants)
            )

        flow = Flow(
            name=name,
            source=src,
            target=dst,
            rate=rate,
            rate_text=rate_text,
            units=units,
            dependencies=dependencies,
        )
        if flow.is_self_loop:
            logger.debug("Flow %s moves %s into itself; its net effect is zero", name, src.name)
            self.diagnostics.report(f"flow {name}", f"from and to are both '{src.name}'; net change is zero")
        self.flows[name] = flow
        return flow

    def _endpoint(self, ref: StockRef, *, flow: str) -> Endpoint:
        if ref is None or ref is EXTERNAL:
            return EXTERNAL
        if isinstance(ref, Stock):
            return ref
        name = str(ref)
        if name in EXTERNAL_NAMES:
            return EXTERNAL
        stock = self.stocks.get(name)
        if stock is None:
            self.diagnostics.report(f"flow {flow}", f"unknown stock '{name}' treated as external")
            return EXTERNAL
        return stock

    def add_constant(self, name: str, value: float) -> None:
        self.constants[name] = float(value)

    def add_lookup_table(self, name: str, points: Iterable[Sequence[float]]) -> LookupTable:
        table = LookupTable(name, points)
        self.lookup_tables[name] = table
        return table

    def add_lookup_table_2d(self, name: str, points: Iterable[Sequence[float]]) -> LookupTable2D:
        table = LookupTable2D(name, points)
        self.lookup_tables_2d[name] = table
        return table

    def add_graph(self, config: GraphConfig) -> None:
        self.graphs[config.name] = config

    def set_termination_condition(
        self,
        condition: Union[str, Callable[[], Any], None],
        text: Optional[str] = None,
    ) -> None:
        if isinstance(condition, str):
            text = text or condition
            condition = compile_expression(condition, self, source="terminate", predicate=True)
        self.termination = condition
        self.termination_text = text

    def compile(self, text: str, *, source: str = "<expr>", predicate: bool = False) -> CompiledExpression:
        return compile_expression(text, self, source=source, predicate=predicate)

    # ------------------------------------------------------------------
    # Delay arena and stateful functions
    # ------------------------------------------------------------------
    def allocate_delay_slot(self, kind: str, label: str) -> int:
        self._delay_states.append(None)
        self._delay_labels.append((kind, label))
        return len(self._delay_states) - 1

    def delay_state(self, slot: int) -> DelayState:
        state = self._delay_states[slot]
        if state is None:
            state = DelayState(kind=self._delay_labels[slot][0])
            self._delay_states[slot] = state
        return state

    @property
    def delay_slots(self) -> List[Tuple[str, str]]:
        return list(self._delay_labels)

    def smooth(self, value: float, time_constant: float, slot: int) -> float:
        return delays.smooth(
            self.delay_state(slot), float(value), float(time_constant), time=self.time, dt=self.dt
        )

    def delay(self, value: float, delay_time: float, slot: int) -> float:
        return delays.delay(self.delay_state(slot), float(value), float(delay_time), time=self.time)

    def delay_gradual(self, value: float, delay_time: float, slot: int) -> float:
        return delays.delay_gradual(self.delay_state(slot), float(value), float(delay_time), time=self.time)

    def lookup(self, value: float, table: str) -> float:
        curve = self.lookup_tables.get(table)
        if curve is None:
            self.diagnostics.report("LOOKUP", f"unknown lookup table '{table}'", time=self.time)
            return 0.0
        try:
            return curve(value)
        except EvaluationError as exc:
            self.diagnostics.report("LOOKUP", str(exc), time=self.time)
            return 0.0

    def lookup_inline(self, value: float, points: Sequence[Sequence[float]], label: str = "<inline>") -> float:
        try:
            return LookupTable(label, points)(value)
        except EvaluationError as exc:
            self.diagnostics.report("LOOKUP", str(exc), time=self.time)
            return 0.0

    def lookup_2d(self, x: float, y: float, table: str) -> float:
        surface = self.lookup_tables_2d.get(table)
        if surface is None:
            self.diagnostics.report("LOOKUP2D", f"unknown lookup table '{table}'", time=self.time)
            return 0.0
        try:
            return surface(x, y)
        except EvaluationError as exc:
            self.diagnostics.report("LOOKUP2D", str(exc), time=self.time)
            return 0.0

    # ------------------------------------------------------------------
    # Simulation
    # ------------------------------------------------------------------
    @property
    def is_terminated(self) -> bool:
        return self.state is SimulationState.TERMINATED

    def _flow_amount(self, flow: Flow, dt: float) -> float:
        rate = flow.rate
        if not callable(rate):
            return rate * dt
        try:
            value = float(rate())
        except Exception as exc:
            self.diagnostics.report(f"flow {flow.name}", f"{type(exc).__name__}: {exc}", time=self.time)
            return 0.0
        if not math.isfinite(value):
            self.diagnostics.report(f"flow {flow.name}", f"non-finite rate {value}", time=self.time)
            return 0.0
        return value * dt

    def _termination_reached(self) -> bool:
        if self.termination is None:
            return False
        try:
            return bool(self.termination())
        except Exception as exc:
            self.diagnostics.report("terminate", f"{type(exc).__name__}: {exc}", time=self.time)
            return False

    def step(self, dt: float = 1.0) -> None:
        """Advance one Euler step of ``dt``; a no-op once terminated."""

        dt = float(dt)
        if not math.isfinite(dt) or dt <= 0:
            raise ValueError(f"dt must be a positive finite number, got {dt}")
        if self.is_terminated:
            return
        self.dt = dt

        amounts = [(flow, self._flow_amount(flow, dt)) for flow in self.flows.values()]

        for flow, amount in amounts:
            if isinstance(flow.source, Stock):
                flow.source.value -= amount
            if isinstance(flow.target, Stock):
                flow.target.value += amount

        for stock in self.stocks.values():
            stock.constrain()

        self.time += dt
        self.step_count += 1
        snapshot = self.record_state()
        self.hooks.publish("step", {"time": self.time, "step": self.step_count, "values": snapshot.values})

        if self._termination_reached():
            self.state = SimulationState.TERMINATED
            logger.info("Simulation terminated at t=%g after %d steps", self.time, self.step_count)
            self.hooks.publish("terminated", {"time": self.time, "step": self.step_count})

    def run(self, steps: int, dt: float = 1.0) -> int:
        """Call :meth:`step` ``steps`` times or until terminated; returns steps taken."""

        taken = 0
        for _ in range(max(0, int(steps))):
            if self.is_terminated:
                break
            self.step(dt)
            taken += 1
        return taken

    def reset(self) -> None:
        """Return to the parsed initial state with all delay memory cleared."""

        for name, initial in self._initial.items():
            stock = self.stocks.get(name)
            if stock is not None:
                stock.value = initial
        self.time = 0.0
        self.dt = 1.0
        self.step_count = 0
        self.state = SimulationState.RUNNING
        self.history.clear()
        self._delay_states = [None] * len(self._delay_states)
        self.record_state()
        self.hooks.publish("reset", {"time": self.time, "step": self.step_count})

    def record_state(self):
        return self.history.append(self.time, self.stock_values())

    # ------------------------------------------------------------------
    # Read-only projections
    # ------------------------------------------------------------------
    def stock_values(self) -> Dict[str, float]:
        return {name: stock.value for name, stock in self.stocks.items()}

    def initial_values(self) -> Dict[str, float]:
        return dict(self._initial)

    def subscribe(self, callback: Callback) -> Callable[[], None]:
        return self.hooks.subscribe(callback)

    def unsubscribe(self, callback: Callback) -> None:
        self.hooks.unsubscribe(callback)

    def __repr__(self) -> str:
        return (
            f"Model(stocks={len(self.stocks)}, flows={len(self.flows)}, "
            f"time={self.time:g}, step={self.step_count}, state={self.state.value})"
        )


__all__ = [
    "EXTERNAL",
    "External",
    "SimulationState",
    "Stock",
    "Flow",
    "GraphConfig",
    "Endpoint",
    "Model",
]
