"""Directory indexer for load-path roots.

Walks each load path and collects the absolute paths of Opal source files
(``.rb``) and their compiled counterparts (``.js``). The result is the flat
file index that the cache stores and the resolver queries.

Contract:
- Inputs: root directory, working-tree restriction flag, allowed zones
- Outputs: fresh list of absolute file paths, in filesystem enumeration order
- Side effects: none (read-only directory listings)
- Errors: none raised; unreadable entries are skipped
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from collections.abc import Iterator
from collections.abc import Sequence

from .paths import is_within
from .paths import is_within_any

logger = logging.getLogger(__name__)

DEFAULT_SUFFIXES = (".rb", ".js")


def _list_directory(path: str) -> list[os.DirEntry[str]]:
    """List a directory, returning [] if it cannot be read."""
    try:
        with os.scandir(path) as it:
            return list(it)
    except OSError as e:
        logger.debug(f"[owl:index] skipping unreadable directory {path}: {e}")
        return []


def _real_path(path: str) -> str | None:
    try:
        return os.path.realpath(path)
    except OSError:
        return None


def _is_excluded(root: str, restrict_to_working_tree: bool, working_tree: str, allowed_zones: Sequence[str]) -> bool:
    if not restrict_to_working_tree:
        return False
    if not is_within(root, working_tree):
        return False
    return not is_within_any(root, tuple(allowed_zones))


def index_directory(
    root: str,
    restrict_to_working_tree: bool,
    *,
    working_tree: str,
    allowed_zones: Sequence[str] = (),
    suffixes: Sequence[str] = DEFAULT_SUFFIXES,
) -> list[str]:
    """Collect source files below ``root``.

    Args:
        root: Absolute directory to walk
        restrict_to_working_tree: Refuse roots inside the working tree unless
            they lie in an allowed zone (used for external dependency roots)
        working_tree: Absolute path of the host project
        allowed_zones: Absolute directories exempt from the restriction
        suffixes: File name endings to collect

    Returns:
        Absolute file paths. Subdirectory contents come before later siblings.
    """
    if not root or not os.path.isabs(root):
        return []
    if _is_excluded(root, restrict_to_working_tree, working_tree, allowed_zones):
        logger.debug(f"[owl:index] {root} is inside the working tree, not indexing")
        return []
    if not os.path.isdir(root):
        return []

    suffix_tuple = tuple(suffixes)
    entries: list[str] = []
    # Explicit stack of (directory, remaining children, realpath) keeps
    # recursion order without recursion depth limits. Only the realpaths of
    # the current ancestor chain count as a cycle; aliases elsewhere are walked.
    stack: list[tuple[str, Iterator[os.DirEntry[str]], str | None]] = [
        (root, iter(_list_directory(root)), _real_path(root))
    ]
    while stack:
        directory, children, _ = stack[-1]
        entry = next(children, None)
        if entry is None:
            stack.pop()
            continue

        current_path = f"{directory}/{entry.name}"
        try:
            is_dir = entry.is_dir()
            is_file = not is_dir and entry.is_file()
        except OSError as e:
            logger.debug(f"[owl:index] skipping {current_path}: {e}")
            continue

        if is_dir:
            if _is_excluded(current_path, restrict_to_working_tree, working_tree, allowed_zones):
                logger.debug(f"[owl:index] {current_path} is inside the working tree, not indexing")
                continue
            real = _real_path(current_path)
            if real is None or real in {frame[2] for frame in stack}:
                logger.debug(f"[owl:index] skipping symlink cycle at {current_path}")
                continue
            stack.append((current_path, iter(_list_directory(current_path)), real))
        elif is_file and current_path.endswith(suffix_tuple):
            entries.append(current_path)

    return entries


def index_load_paths(
    load_paths: Iterable[str],
    *,
    working_tree: str,
    allowed_zones: Sequence[str] = (),
    suffixes: Sequence[str] = DEFAULT_SUFFIXES,
) -> list[str]:
    """Index every load path in order and concatenate the results.

    Load paths are external roots, so each is indexed with the working-tree
    restriction on. Duplicates across load paths are kept.
    """
    entries: list[str] = []
    for load_path in load_paths:
        found = index_directory(
            load_path,
            True,
            working_tree=working_tree,
            allowed_zones=allowed_zones,
            suffixes=suffixes,
        )
        logger.debug(f"[owl:index] {load_path}: {len(found)} entries")
        entries.extend(found)
    return entries
