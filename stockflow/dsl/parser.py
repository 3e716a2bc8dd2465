"""Line-oriented block parser for the stock-and-flow DSL.

The parser turns source text into :class:`Declaration` records and never
evaluates anything. It is lenient: a line it does not understand is skipped
(and logged at DEBUG), never reported as an error, so any input yields some
runnable model.

Recognised forms::

    const NAME = <expr>
    stock NAME {        key: value ...  }
    flow NAME {         key: value ...  }
    terminate {         when: <expr>    }
    graph NAME {        key: value ...  }
    lookup NAME {       [x, y] ...      }
    lookup2d NAME {     [x, y]: z ...   }

Property values are classified as a quoted string (``str``), a numeric
literal (``float``) or a :class:`RawExpression` to be compiled later.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)


class BlockKind(str, Enum):
    CONST = "const"
    STOCK = "stock"
    FLOW = "flow"
    TERMINATE = "terminate"
    GRAPH = "graph"
    LOOKUP = "lookup"
    LOOKUP2D = "lookup2d"


class RawExpression(str):
    """Unquoted, non-numeric property text; compiled by the loader."""

    def __repr__(self) -> str:
        return f"RawExpression({str.__repr__(self)})"


PropertyValue = Union[str, float, RawExpression]


@dataclass
class Declaration:
    kind: BlockKind
    name: str
    properties: Dict[str, PropertyValue] = field(default_factory=dict)
    points: List[Tuple[float, ...]] = field(default_factory=list)
    line: int = 0

    def get(self, key: str, default: Optional[PropertyValue] = None) -> Optional[PropertyValue]:
        return self.properties.get(key, default)


_NUMBER = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")
_CONST = re.compile(r"^const\s+([A-Za-z_]\w*)\s*=\s*(.+)$")
_OPEN = re.compile(r"^(stock|flow|graph|lookup2d|lookup)\s+([A-Za-z_]\w*)\s*\{")
_TERMINATE = re.compile(r"^terminate\s*\{")
_POINT_1D = re.compile(r"^\[([^,\]]+),\s*([^,\]]+)[^\]]*\]")
_POINT_2D = re.compile(r"^\[([^,\]]+),\s*([^,\]]+)[^\]]*\]\s*:\s*(.+)$")


def parse_number(text: str) -> Optional[float]:
    text = text.strip()
    if not _NUMBER.match(text):
        return None
    return float(text)


def classify_value(text: str) -> PropertyValue:
    value = text.strip()
    if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
        return value[1:-1]
    if value == "":
        return 0.0
    number = parse_number(value)
    if number is not None:
        return number
    return RawExpression(value)


def _parse_point(kind: BlockKind, line: str) -> Optional[Tuple[float, ...]]:
    pattern = _POINT_2D if kind is BlockKind.LOOKUP2D else _POINT_1D
    match = pattern.match(line)
    if match is None:
        return None
    values = [parse_number(group) for group in match.groups()]
    if any(value is None for value in values):
        return None
    return tuple(values)  # type: ignore[arg-type]


class BlockParser:
    """State machine over DSL lines; ``current`` is the open block, if any."""

    def __init__(self) -> None:
        self.declarations: List[Declaration] = []
        self.current: Optional[Declaration] = None

    def feed(self, raw: str, lineno: int = 0) -> None:
        line = raw.strip()
        if not line or line.startswith("//"):
            return

        match = _CONST.match(line)
        if match:
            name, expr = match.group(1), match.group(2).strip()
            self.declarations.append(
                Declaration(BlockKind.CONST, name, {"value": classify_value(expr)}, line=lineno)
            )
            return

        match = _OPEN.match(line)
        if match:
            self._open(BlockKind(match.group(1)), match.group(2), lineno)
            return
        if _TERMINATE.match(line):
            self._open(BlockKind.TERMINATE, "terminate", lineno)
            return

        block = self.current
        if block is not None and block.kind in (BlockKind.LOOKUP, BlockKind.LOOKUP2D) and line.startswith("["):
            point = _parse_point(block.kind, line)
            if point is None:
                logger.debug("line %d: dropped lookup point %r", lineno, line)
            else:
                block.points.append(point)
            return

        if block is not None and ":" in line:
            key, _, value = line.partition(":")
            block.properties[key.strip()] = classify_value(value)
            return

        if line == "}":
            self._close(lineno)
            return

        logger.debug("line %d: skipped %r", lineno, line)

    def _open(self, kind: BlockKind, name: str, lineno: int) -> None:
        if self.current is not None:
            logger.debug("line %d: %s block '%s' never closed; discarded", lineno, self.current.kind.value, self.current.name)
        self.current = Declaration(kind, name, line=lineno)

    def _close(self, lineno: int) -> None:
        if self.current is None:
            logger.debug("line %d: stray closing brace", lineno)
            return
        self.declarations.append(self.current)
        self.current = None

    def finish(self) -> List[Declaration]:
        if self.current is not None:
            logger.debug("%s block '%s' never closed; discarded", self.current.kind.value, self.current.name)
            self.current = None
        return self.declarations


def parse_declarations(source: Union[str, Iterable[str]]) -> List[Declaration]:
    """Parse DSL text (or an iterable of lines) into declarations."""

    lines = source.splitlines() if isinstance(source, str) else source
    parser = BlockParser()
    for lineno, line in enumerate(lines, start=1):
        parser.feed(line, lineno)
    return parser.finish()


__all__ = [
    "BlockKind",
    "BlockParser",
    "Declaration",
    "PropertyValue",
    "RawExpression",
    "classify_value",
    "parse_declarations",
    "parse_number",
]
