"""
Running external programs (Infernal, HMMER, BLAST+).

Every command is logged and, when a command file is given, appended to it
so a build can be reproduced by hand.
"""

import logging
import shlex
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence, Union

from ..config import Config, get_config

logger = logging.getLogger(__name__)


class CommandRunner:
    """Runs external commands and records them.

    Args:
        cmd_file: File each command line is appended to
        config: Configuration used to locate executables
        dry_run: Record commands without running them
    """

    def __init__(
        self,
        cmd_file: Optional[Union[str, Path]] = None,
        config: Optional[Config] = None,
        dry_run: bool = False,
    ):
        self.cmd_file = Path(cmd_file) if cmd_file else None
        self.config = config or get_config()
        self.dry_run = dry_run
        self.history: List[List[str]] = []

    def executable(self, name: str) -> str:
        if self.dry_run:
            return name
        return self.config.executable(name)

    def run(
        self,
        cmd: Sequence[str],
        stdout_path: Optional[Union[str, Path]] = None,
    ) -> subprocess.CompletedProcess:
        """Run a command.

        Args:
            cmd: Command and arguments; the first element is an executable
                name resolved through the configuration
            stdout_path: File to write standard output to

        Returns:
            The completed process

        Raises:
            FileNotFoundError: If the executable cannot be found
            RuntimeError: If the command exits with a non-zero status
        """
        cmd = [self.executable(cmd[0])] + [str(arg) for arg in cmd[1:]]
        line = " ".join(shlex.quote(arg) for arg in cmd)
        if stdout_path is not None:
            line += f" > {shlex.quote(str(stdout_path))}"

        logger.debug(f"Running: {line}")
        self.history.append(cmd)
        if self.cmd_file is not None:
            with open(self.cmd_file, "a") as f:
                f.write(line + "\n")

        if self.dry_run:
            return subprocess.CompletedProcess(cmd, 0, "", "")

        if stdout_path is not None:
            with open(stdout_path, "w") as out:
                result = subprocess.run(cmd, stdout=out, stderr=subprocess.PIPE, text=True)
        else:
            result = subprocess.run(cmd, capture_output=True, text=True)

        if result.returncode != 0:
            raise RuntimeError(
                f"Command failed with exit status {result.returncode}: {line}\n{result.stderr}"
            )
        return result
