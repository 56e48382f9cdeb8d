"""Shared test helpers."""

import os
import time
from pathlib import Path

NOW = time.time()


def set_mtime(path: Path, mtime: float) -> None:
    os.utime(path, (mtime, mtime))


class FakeEnumerator:
    """Stands in for the bundle exec load-path command."""

    def __init__(self, load_paths: list[str]):
        self.load_paths = list(load_paths)
        self.calls = 0

    def enumerate(self) -> list[str]:
        self.calls += 1
        return list(self.load_paths)
