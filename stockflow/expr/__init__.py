from .compiler import CompiledExpression, Compiler, compile_expression, evaluate_constant
from .parser import parse

__all__ = [
    "CompiledExpression",
    "Compiler",
    "compile_expression",
    "evaluate_constant",
    "parse",
]
