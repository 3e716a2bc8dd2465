"""Exception types shared across the parser, compiler and engine."""

from __future__ import annotations


class StockflowError(Exception):
    """Base class for stockflow errors."""


class ExpressionSyntaxError(StockflowError):
    """Raised when an expression cannot be tokenized or parsed."""

    def __init__(self, message: str, text: str = "", position: int | None = None):
        self.text = text
        self.position = position
        if position is not None:
            message = f"{message} at position {position} in {text!r}"
        super().__init__(message)


class EvaluationError(StockflowError):
    """Raised while evaluating a compiled expression.

    Never escapes an evaluator: the compiler catches it at the boundary and
    substitutes the fallback value.
    """


__all__ = ["StockflowError", "ExpressionSyntaxError", "EvaluationError"]
