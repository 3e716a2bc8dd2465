from .loader import build_model, load_model, parse_dsl
from .parser import BlockKind, BlockParser, Declaration, RawExpression, parse_declarations

__all__ = [
    "BlockKind",
    "BlockParser",
    "Declaration",
    "RawExpression",
    "build_model",
    "load_model",
    "parse_declarations",
    "parse_dsl",
]
