"""
Tunecellar - a personal media library server.

Clients upload audio files; a background pipeline reads their tags, files them
into a per-user virtual directory tree stored in SQLite and moves them into
permanent per-user storage.
"""

__version__ = "0.1.0"

from tunecellar.server import TunecellarServer

__all__ = ["TunecellarServer", "__version__"]
