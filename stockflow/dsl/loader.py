"""Build a live :class:`~stockflow.engine.model.Model` from DSL declarations."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional

from ..config import SimulationConfig
from ..engine.model import GraphConfig, Model
from ..observability.diagnostics import Diagnostics
from ..expr.compiler import evaluate_constant
from .parser import BlockKind, Declaration, PropertyValue, parse_declarations

logger = logging.getLogger(__name__)


def _constant_value(
    model: Model,
    value: Optional[PropertyValue],
    *,
    label: str,
    default: Optional[float],
) -> Optional[float]:
    if value is None:
        return default
    if isinstance(value, float):
        return value
    try:
        return evaluate_constant(str(value), model.constants)
    except Exception as exc:
        logger.warning("Failed to evaluate %s = %s: %s", label, value, exc)
        model.diagnostics.report(label, f"could not evaluate {str(value)!r}: {exc}; using {default}")
        return default


def _text(value: Optional[PropertyValue]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


def _split_variables(value: Optional[PropertyValue]) -> List[str]:
    if value is None or isinstance(value, float):
        return []
    return [part.strip() for part in str(value).split(",") if part.strip()]


def _add_declaration(model: Model, decl: Declaration) -> None:
    props = decl.properties
    if decl.kind is BlockKind.CONST:
        value = _constant_value(model, props.get("value"), label=f"const {decl.name}", default=0.0)
        model.add_constant(decl.name, value or 0.0)
    elif decl.kind is BlockKind.STOCK:
        model.add_stock(
            decl.name,
            _constant_value(model, props.get("initial"), label=f"stock {decl.name}.initial", default=0.0) or 0.0,
            min_value=_constant_value(model, props.get("min"), label=f"stock {decl.name}.min", default=None),
            max_value=_constant_value(model, props.get("max"), label=f"stock {decl.name}.max", default=None),
            units=_text(props.get("units")),
        )
    elif decl.kind is BlockKind.FLOW:
        rate = props.get("rate", 0.0)
        model.add_flow(
            decl.name,
            _text(props.get("from")),
            _text(props.get("to")),
            rate if isinstance(rate, float) else str(rate),
            units=_text(props.get("units")),
        )
    elif decl.kind is BlockKind.TERMINATE:
        when = props.get("when")
        if when is not None:
            model.set_termination_condition(_text(when))
    elif decl.kind is BlockKind.GRAPH:
        model.add_graph(
            GraphConfig(
                name=decl.name,
                title=_text(props.get("title")) or decl.name,
                variables=_split_variables(props.get("variables")),
                type=_text(props.get("type")) or "line",
                y_axis_label=_text(props.get("yAxisLabel")),
                color=_text(props.get("color")),
            )
        )
    elif decl.kind is BlockKind.LOOKUP:
        model.add_lookup_table(decl.name, decl.points)
    elif decl.kind is BlockKind.LOOKUP2D:
        model.add_lookup_table_2d(decl.name, decl.points)


# Added after every other declaration, so they may name stocks declared below them.
_DEFERRED = (BlockKind.FLOW, BlockKind.TERMINATE)


def build_model(
    declarations: Iterable[Declaration],
    *,
    config: Optional[SimulationConfig] = None,
    diagnostics: Optional[Diagnostics] = None,
) -> Model:
    config = config if config is not None else SimulationConfig()
    model = Model(
        history_capacity=config.history_capacity,
        diagnostics=diagnostics if diagnostics is not None else Diagnostics(config.diagnostics_capacity),
    )
    declarations = list(declarations)
    for decl in declarations:
        if decl.kind not in _DEFERRED:
            _add_declaration(model, decl)
    for decl in declarations:
        if decl.kind in _DEFERRED:
            _add_declaration(model, decl)
    model.record_state()
    return model


def parse_dsl(
    source: str,
    *,
    config: Optional[SimulationConfig] = None,
    diagnostics: Optional[Diagnostics] = None,
) -> Model:
    """Parse DSL text into a ready-to-step model with one initial snapshot."""

    return build_model(parse_declarations(source), config=config, diagnostics=diagnostics)


def load_model(path: str | Path, *, config: Optional[SimulationConfig] = None) -> Model:
    text = Path(path).read_text(encoding="utf-8")
    return parse_dsl(text, config=config)


__all__ = ["build_model", "parse_dsl", "load_model"]
