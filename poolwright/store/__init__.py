from .memory import InMemoryStore

__all__ = ["InMemoryStore"]
