from .hooks import EVENTS, Callback, Hooks

__all__ = ["EVENTS", "Callback", "Hooks"]
