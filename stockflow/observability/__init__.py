from .diagnostics import Diagnostic, Diagnostics

__all__ = ["Diagnostic", "Diagnostics"]
