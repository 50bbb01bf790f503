"""Record storage."""

from .state import JsonFileStore, StateError, StateStore

__all__ = ["JsonFileStore", "StateError", "StateStore"]
