"""CLI command groups for owl-resolver."""

__all__ = [
    "cache",
]
