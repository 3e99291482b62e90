"""Metered asyncio channels (bounded, priority and unbounded), metered oneshots and subsystem connection graphs."""

__version__ = "0.6.1"
__all__ = ["errors", "meter", "unbounded", "bounded", "oneshot", "graph"]