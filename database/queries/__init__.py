"""Database query modules for the DayZ log watcher"""

from .state import EngineStateQueries

__all__ = [
    'EngineStateQueries',
]
