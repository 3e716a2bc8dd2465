from .delays import DelayState
from .history import DEFAULT_CAPACITY, History, Snapshot
from .lookup import LookupTable, LookupTable2D
from .model import EXTERNAL, External, Flow, GraphConfig, Model, SimulationState, Stock
from .runner import run_batched, summarise

__all__ = [
    "DEFAULT_CAPACITY",
    "DelayState",
    "EXTERNAL",
    "External",
    "Flow",
    "GraphConfig",
    "History",
    "LookupTable",
    "LookupTable2D",
    "Model",
    "SimulationState",
    "Snapshot",
    "Stock",
    "run_batched",
    "summarise",
]
