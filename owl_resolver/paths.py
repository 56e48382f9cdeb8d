"""Path predicates shared by the indexer and the resolver.

Paths are compared as plain strings, the same way they are stored in the
cache index. Nothing here resolves symlinks or normalizes separators.
"""

from __future__ import annotations


def is_within(path: str, root: str) -> bool:
    """True if ``path`` is ``root`` itself or lies below it."""
    if not root:
        return False
    root = root.rstrip("/") or "/"
    if path == root:
        return True
    prefix = root if root.endswith("/") else root + "/"
    return path.startswith(prefix)


def is_within_any(path: str, roots: list[str] | tuple[str, ...]) -> bool:
    return any(is_within(path, root) for root in roots)
