"""Compile expression text into evaluators bound to one live model.

Expressions are parsed once into an AST and then turned into a tree of
closures. Identifiers are looked up by name on every evaluation through a
layered symbol table (built-in globals, then constants, then live stock
values), so a stock called ``Rate`` can never leak into ``BirthRate``.

Calls to ``SMOOTH``, ``DELAY`` and ``DELAY_GRADUAL`` claim a slot in the
model's delay arena while compiling. The slot index is baked into the
closure, so every evaluation of that call site reuses the same buffer for the
lifetime of the model.

Evaluators never raise. Any failure is reported to the model's diagnostics
sink and replaced with ``0.0`` (numeric expressions) or ``False``
(termination predicates).
"""

from __future__ import annotations

import logging
import math
import operator
from collections import Counter
from typing import TYPE_CHECKING, Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Tuple

from ..errors import EvaluationError, ExpressionSyntaxError
from .nodes import Binary, Call, ListLiteral, Logical, Name, Node, Number, String, Ternary, Unary
from .parser import parse

if TYPE_CHECKING:  # pragma: no cover
    from ..engine.model import Model

logger = logging.getLogger(__name__)

Thunk = Callable[[], Any]

CONSTANT_GLOBALS: Dict[str, float] = {
    "PI": math.pi,
    "E": math.e,
}

MODEL_GLOBALS: Dict[str, Callable[["Model"], float]] = {
    "TIME": lambda m: m.time,
    "dt": lambda m: m.dt,
    "$time": lambda m: m.time,
    "$step": lambda m: float(m.step_count),
}


def _round_half_up(value: float) -> float:
    return float(math.floor(value + 0.5))


def _min(*values: float) -> float:
    return min(values)


def _max(*values: float) -> float:
    return max(values)


def _modulo(left: float, right: float) -> float:
    if right == 0:
        raise ZeroDivisionError("modulo by zero")
    return math.fmod(left, right)


# name -> (callable, arity); arity None means "one or more".
MATH_FUNCTIONS: Dict[str, Tuple[Callable[..., float], Optional[int]]] = {
    "sin": (math.sin, 1),
    "cos": (math.cos, 1),
    "tan": (math.tan, 1),
    "sqrt": (math.sqrt, 1),
    "abs": (abs, 1),
    "floor": (math.floor, 1),
    "ceil": (math.ceil, 1),
    "round": (_round_half_up, 1),
    "min": (_min, None),
    "max": (_max, None),
    "pow": (math.pow, 2),
    "exp": (math.exp, 1),
    "log": (math.log, 1),
}

DELAY_FUNCTIONS = ("SMOOTH", "DELAY", "DELAY_GRADUAL")
LOOKUP_FUNCTIONS = ("LOOKUP", "LOOKUP2D")
STATEFUL_FUNCTIONS = DELAY_FUNCTIONS + LOOKUP_FUNCTIONS

_BINARY_OPS: Dict[str, Callable[[Any, Any], Any]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": operator.truediv,
    "%": _modulo,
    "<": operator.lt,
    ">": operator.gt,
    "<=": operator.le,
    ">=": operator.ge,
    "==": operator.eq,
    "!=": operator.ne,
}


class Compiler:
    """Turns one AST into closures.

    With ``model=None`` the compiler works in constant mode: only ``PI``,
    ``E``, the supplied constants and the math functions are visible.
    """

    def __init__(
        self,
        model: Optional["Model"] = None,
        *,
        source: str = "<expr>",
        constants: Optional[Mapping[str, float]] = None,
    ):
        self.model = model
        self.source = source
        self.constants: Mapping[str, float] = model.constants if model is not None else (constants or {})
        self.references: set[str] = set()
        self._occurrences: Counter[str] = Counter()

    def compile(self, node: Node) -> Thunk:
        if isinstance(node, Number):
            value = node.value
            return lambda: value
        if isinstance(node, Name):
            return self._name(node.name)
        if isinstance(node, Unary):
            return self._unary(node)
        if isinstance(node, Binary):
            fn = _BINARY_OPS[node.op]
            left, right = self.compile(node.left), self.compile(node.right)
            return lambda: fn(left(), right())
        if isinstance(node, Logical):
            left, right = self.compile(node.left), self.compile(node.right)
            # Operand-valued, so ``A || 5`` yields 5 when A is zero.
            if node.op == "&&":
                return lambda: left() and right()
            return lambda: left() or right()
        if isinstance(node, Ternary):
            cond, then, otherwise = (
                self.compile(node.condition),
                self.compile(node.then),
                self.compile(node.otherwise),
            )
            return lambda: then() if cond() else otherwise()
        if isinstance(node, Call):
            return self._call(node)
        if isinstance(node, String):
            raise ExpressionSyntaxError(f"String {node.value!r} is only valid as a lookup table name")
        if isinstance(node, ListLiteral):
            raise ExpressionSyntaxError("List literals are only valid as inline lookup tables")
        raise ExpressionSyntaxError(f"Unsupported node {node!r}")

    def _name(self, name: str) -> Thunk:
        self.references.add(name)
        if name in CONSTANT_GLOBALS:
            value = CONSTANT_GLOBALS[name]
            return lambda: value

        constants = self.constants
        model = self.model
        if model is None:

            def resolve_constant() -> float:
                try:
                    return constants[name]
                except KeyError:
                    raise EvaluationError(f"Unknown identifier '{name}'") from None

            return resolve_constant

        if name in MODEL_GLOBALS:
            getter = MODEL_GLOBALS[name]
            return lambda: getter(model)

        stocks = model.stocks

        def resolve() -> float:
            value = constants.get(name)
            if value is not None:
                return value
            stock = stocks.get(name)
            if stock is not None:
                return stock.value
            raise EvaluationError(f"Unknown identifier '{name}'")

        return resolve

    def _unary(self, node: Unary) -> Thunk:
        operand = self.compile(node.operand)
        if node.op == "-":
            return lambda: -operand()
        if node.op == "+":
            return lambda: +operand()
        return lambda: not operand()

    def _call(self, node: Call) -> Thunk:
        if node.func in MATH_FUNCTIONS:
            fn, arity = MATH_FUNCTIONS[node.func]
            self._check_arity(node, arity)
            args = [self.compile(arg) for arg in node.args]
            if arity == 1:
                (only,) = args
                return lambda: fn(only())
            return lambda: fn(*(arg() for arg in args))

        if node.func in STATEFUL_FUNCTIONS:
            if self.model is None:
                raise ExpressionSyntaxError(f"{node.func} is not available in constant expressions")
            if node.func in DELAY_FUNCTIONS:
                return self._delay_call(node)
            if node.func == "LOOKUP":
                return self._lookup_call(node)
            return self._lookup2d_call(node)

        raise ExpressionSyntaxError(f"Unknown function '{node.func}'")

    def _check_arity(self, node: Call, arity: Optional[int]) -> None:
        count = len(node.args)
        if arity is None and count == 0:
            raise ExpressionSyntaxError(f"{node.func} expects at least one argument")
        if arity is not None and count != arity:
            raise ExpressionSyntaxError(f"{node.func} expects {arity} argument(s), got {count}")

    def _delay_call(self, node: Call) -> Thunk:
        self._check_arity(node, 2)
        model = self.model
        occurrence = self._occurrences[node.func]
        self._occurrences[node.func] += 1
        # Claim the slot before compiling arguments so nested calls number in source order.
        slot = model.allocate_delay_slot(node.func, f"{self.source}:{node.func}#{occurrence}")
        value, parameter = (self.compile(arg) for arg in node.args)
        method = {
            "SMOOTH": model.smooth,
            "DELAY": model.delay,
            "DELAY_GRADUAL": model.delay_gradual,
        }[node.func]
        return lambda: method(value(), parameter(), slot)

    def _table_name(self, node: Node) -> Optional[str]:
        if isinstance(node, Name):
            return node.name
        if isinstance(node, String):
            return node.value
        return None

    def _lookup_call(self, node: Call) -> Thunk:
        self._check_arity(node, 2)
        model = self.model
        value = self.compile(node.args[0])
        table = node.args[1]
        name = self._table_name(table)
        if name is not None:
            return lambda: model.lookup(value(), name)
        if isinstance(table, ListLiteral):
            pairs = self._inline_pairs(table)
            label = f"{self.source}:inline"
            return lambda: model.lookup_inline(value(), [(x(), y()) for x, y in pairs], label)
        raise ExpressionSyntaxError("LOOKUP expects a table name or a list of [x, y] pairs")

    def _inline_pairs(self, table: ListLiteral) -> List[Tuple[Thunk, Thunk]]:
        pairs: List[Tuple[Thunk, Thunk]] = []
        for item in table.items:
            if not isinstance(item, ListLiteral) or len(item.items) != 2:
                raise ExpressionSyntaxError("Inline lookup points must be [x, y] pairs")
            pairs.append((self.compile(item.items[0]), self.compile(item.items[1])))
        return pairs

    def _lookup2d_call(self, node: Call) -> Thunk:
        self._check_arity(node, 3)
        model = self.model
        x, y = self.compile(node.args[0]), self.compile(node.args[1])
        name = self._table_name(node.args[2])
        if name is None:
            raise ExpressionSyntaxError("LOOKUP2D expects a table name")
        return lambda: model.lookup_2d(x(), y(), name)


class CompiledExpression:
    """Evaluator for one expression bound to one model.

    Calling the instance evaluates against the model's current state and
    always returns a value: a float for rates, a bool for predicates.
    """

    def __init__(
        self,
        text: str,
        fn: Optional[Thunk],
        *,
        model: Optional["Model"],
        source: str,
        predicate: bool = False,
        references: FrozenSet[str] = frozenset(),
        error: Optional[str] = None,
    ):
        self.text = text
        self.source = source
        self.predicate = predicate
        self.references = references
        self.error = error
        self._fn = fn
        self._model = model

    @property
    def fallback(self) -> float | bool:
        return False if self.predicate else 0.0

    @property
    def ok(self) -> bool:
        return self.error is None

    def __call__(self) -> float | bool:
        if self._fn is None:
            return self.fallback
        try:
            value = self._fn()
            if self.predicate:
                if isinstance(value, float) and math.isnan(value):
                    return False
                return bool(value)
            value = float(value)
            if not math.isfinite(value):
                raise EvaluationError(f"non-finite result {value}")
            return value
        except Exception as exc:
            self._report(f"{type(exc).__name__}: {exc} in {self.text!r}")
            return self.fallback

    def _report(self, message: str) -> None:
        if self._model is not None:
            self._model.diagnostics.report(self.source, message, time=self._model.time)
        else:
            logger.warning("%s: %s", self.source, message)

    def __repr__(self) -> str:
        kind = "predicate" if self.predicate else "numeric"
        return f"CompiledExpression({self.text!r}, {kind}, source={self.source!r})"


def compile_expression(
    text: str,
    model: "Model",
    *,
    source: str = "<expr>",
    predicate: bool = False,
    lenient: bool = True,
) -> CompiledExpression:
    """Compile ``text`` against ``model``.

    With ``lenient`` (the default) a syntax error is reported once to the
    model's diagnostics and the returned evaluator always yields its
    fallback; otherwise :class:`ExpressionSyntaxError` propagates.
    """

    compiler = Compiler(model, source=source)
    try:
        fn = compiler.compile(parse(text))
    except ExpressionSyntaxError as exc:
        if not lenient:
            raise
        model.diagnostics.report(source, f"Syntax error: {exc}")
        return CompiledExpression(
            text, None, model=model, source=source, predicate=predicate, error=str(exc)
        )
    return CompiledExpression(
        text,
        fn,
        model=model,
        source=source,
        predicate=predicate,
        references=frozenset(compiler.references),
    )


def evaluate_constant(text: str, constants: Mapping[str, float]) -> float:
    """Evaluate a constant expression immediately.

    Only ``PI``, ``E``, previously declared ``constants`` and the math
    functions are visible. Raises on any failure; callers decide the fallback.
    """

    compiler = Compiler(None, source="const", constants=constants)
    value = float(compiler.compile(parse(text))())
    if not math.isfinite(value):
        raise EvaluationError(f"non-finite result {value}")
    return value


__all__ = [
    "Compiler",
    "CompiledExpression",
    "compile_expression",
    "evaluate_constant",
    "CONSTANT_GLOBALS",
    "MODEL_GLOBALS",
    "MATH_FUNCTIONS",
    "STATEFUL_FUNCTIONS",
]
