"""Load-path enumeration through the Ruby toolchain.

The host project's Opal load paths are only known to Ruby, so they are read
from a ``bundle exec`` process that prints one directory per line. This is
slow (hundreds of milliseconds to seconds), which is why the result is cached.
"""

from __future__ import annotations

import logging
import subprocess

from .config import ResolverConfig
from .errors import ExternalToolError

logger = logging.getLogger(__name__)

RAILS_LOAD_PATHS_SCRIPT = (
    "puts (Rails.configuration.respond_to?(:assets) ? "
    "(Rails.configuration.assets.paths + Opal.paths).uniq : "
    "Opal.paths); exit 0"
)
RUBY_LOAD_PATHS_SCRIPT = "Bundler.require; puts Opal.paths; exit 0"


def parse_load_path_output(output: str) -> list[str]:
    """Split tool output into load paths.

    Drops a single trailing empty line (newline-terminated output). Lines are
    otherwise kept as printed: no validation, no deduplication.
    """
    lines = output.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return lines


class LoadPathEnumerator:
    """Runs the Ruby toolchain to list the project's Opal load paths."""

    def __init__(self, config: ResolverConfig):
        self.config = config

    def is_rails_project(self) -> bool:
        return self.config.rails_marker_path.exists()

    def build_command(self) -> list[str]:
        """Pick the invocation for this project.

        Rails projects contribute their asset paths as well as Opal's.
        """
        if self.is_rails_project():
            return ["bundle", "exec", "rails", "runner", RAILS_LOAD_PATHS_SCRIPT]
        return ["bundle", "exec", "ruby", "-e", RUBY_LOAD_PATHS_SCRIPT]

    def enumerate(self) -> list[str]:
        """Run the toolchain and return load paths in search order.

        Raises:
            ExternalToolError: Command could not start, exited non-zero, or
                printed output that is not UTF-8 text
        """
        cmd = self.build_command()
        logger.info(f"[owl:load_paths] running: {' '.join(cmd[:4])} ...")

        try:
            result = subprocess.run(cmd, cwd=self.config.project_root, capture_output=True)
        except OSError as e:
            raise ExternalToolError(f"Could not run {cmd[0]}: {e}", command=cmd) from e

        stderr = result.stderr.decode("utf-8", errors="replace") if result.stderr else ""
        if result.returncode != 0:
            raise ExternalToolError(
                f"Load path command failed with exit code {result.returncode}: {stderr.strip()}",
                command=cmd,
                returncode=result.returncode,
                stderr=stderr,
            )

        try:
            output = result.stdout.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ExternalToolError(
                f"Load path command printed undecodable output: {e}",
                command=cmd,
                returncode=result.returncode,
                stderr=stderr,
            ) from e

        load_paths = parse_load_path_output(output)
        logger.debug(f"[owl:load_paths] {len(load_paths)} load paths")
        return load_paths

    def __repr__(self) -> str:
        return f"LoadPathEnumerator({self.config.project_root})"
