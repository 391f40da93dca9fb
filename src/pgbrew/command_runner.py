"""Child process execution.

This module wraps every external tool invocation pgbrew performs (git, cargo,
make, pg_config, psql, sudo).

Design:
    - run() streams combined stdout/stderr to the terminal while capturing it,
      so build failures can be reported with the tool's output
    - capture() runs quietly and returns stdout and stderr separately
    - A missing executable is reported as exit code 127 instead of raising
    - No timeouts or retries; the user's interrupt is the only cancellation
"""

import logging
import shlex
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union

# Shell convention for "command not found"
COMMAND_NOT_FOUND = 127


@dataclass
class CommandResult:
    """Result of a finished child process."""

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Combined stdout and stderr."""
        if self.stdout and self.stderr:
            return f"{self.stdout.rstrip()}\n{self.stderr}"
        return self.stdout or self.stderr


def format_command(cmd: Sequence[str]) -> str:
    """Render a command list the way a user would type it."""
    return " ".join(shlex.quote(str(part)) for part in cmd)


class CommandRunner:
    """Runs external commands synchronously."""

    def __init__(self, echo: bool = True):
        """Initialize command runner.

        Args:
            echo: Whether run() copies the child's output to stdout
        """
        self.echo = echo

    def run(
        self,
        cmd: Sequence[str],
        cwd: Optional[Union[str, Path]] = None,
    ) -> CommandResult:
        """Run a command, streaming its output while capturing it.

        Args:
            cmd: Command and arguments
            cwd: Working directory for the child process

        Returns:
            CommandResult with the combined output in ``stdout``
        """
        cmd_list = [str(part) for part in cmd]
        logging.debug(f"Running: {format_command(cmd_list)} (cwd={cwd})")

        try:
            process = subprocess.Popen(
                cmd_list,
                cwd=str(cwd) if cwd is not None else None,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
            )
        except FileNotFoundError as e:
            logging.debug(f"Executable not found: {cmd_list[0]}")
            return CommandResult(returncode=COMMAND_NOT_FOUND, stderr=str(e))

        lines: List[str] = []
        assert process.stdout is not None
        with process.stdout:
            for line in process.stdout:
                lines.append(line)
                if self.echo:
                    sys.stdout.write(line)
                    sys.stdout.flush()
        returncode = process.wait()

        logging.debug(f"Exit code {returncode}: {cmd_list[0]}")
        return CommandResult(returncode=returncode, stdout="".join(lines))

    def capture(
        self,
        cmd: Sequence[str],
        cwd: Optional[Union[str, Path]] = None,
    ) -> CommandResult:
        """Run a command quietly and capture stdout and stderr.

        Args:
            cmd: Command and arguments
            cwd: Working directory for the child process

        Returns:
            CommandResult with stdout and stderr kept apart
        """
        cmd_list = [str(part) for part in cmd]
        logging.debug(f"Capturing: {format_command(cmd_list)} (cwd={cwd})")

        try:
            result = subprocess.run(
                cmd_list,
                cwd=str(cwd) if cwd is not None else None,
                capture_output=True,
                text=True,
                errors="replace",
            )
        except FileNotFoundError as e:
            logging.debug(f"Executable not found: {cmd_list[0]}")
            return CommandResult(returncode=COMMAND_NOT_FOUND, stderr=str(e))

        return CommandResult(
            returncode=result.returncode,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
        )
