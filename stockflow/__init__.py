from __future__ import annotations

import importlib.metadata

from .dsl import load_model, parse_dsl
from .engine import EXTERNAL, Flow, Model, Stock, run_batched, summarise


def _load_version() -> str:
    try:
        return importlib.metadata.version("stockflow")
    except importlib.metadata.PackageNotFoundError:
        return "0.0.0"


__version__ = _load_version()

__all__ = [
    "__version__",
    "EXTERNAL",
    "Flow",
    "Model",
    "Stock",
    "load_model",
    "parse_dsl",
    "run_batched",
    "summarise",
]
