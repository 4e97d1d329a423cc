"""Command history storage, search, navigation and hints for line editors."""

__version__ = "0.1.0"

__all__ = ["base", "cursor", "file_backed", "hinter", "item", "sqlite_backed"]