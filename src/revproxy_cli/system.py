from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
from collections.abc import Generator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass

from .configmanager import ToolPaths
from .errors import CommandError, PrivilegeError

logger = logging.getLogger(__name__)

MISSING_EXECUTABLE_STATUS = 127
NOT_EXECUTABLE_STATUS = 126


@dataclass(frozen=True)
class CommandResult:
    argv: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        return "\n".join(s for s in (self.stdout.strip(), self.stderr.strip()) if s)


class CommandRunner:
    """Runs external tools and reports their exit status.

    A missing executable is reported as status 127 and one that cannot be
    executed as 126 instead of raising, so callers only ever branch on
    `CommandResult.ok`.
    """

    def run(self, argv: Sequence[str], *, input_text: str | None = None) -> CommandResult:
        args = tuple(str(a) for a in argv)
        logger.debug("Running: %s", shlex.join(args))
        try:
            proc = subprocess.run(
                args,
                input=input_text,
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as e:
            logger.debug("Executable not found: %s", args[0])
            return CommandResult(args, MISSING_EXECUTABLE_STATUS, "", str(e))
        except OSError as e:
            logger.debug("Cannot execute %s (%s)", args[0], str(e))
            return CommandResult(args, NOT_EXECUTABLE_STATUS, "", str(e))
        result = CommandResult(args, proc.returncode, proc.stdout or "", proc.stderr or "")
        if not result.ok:
            logger.debug("Command exited with %s: %s", result.returncode, result.output)
        return result

    def which(self, name: str) -> str | None:
        return shutil.which(name)

    def check(self, argv: Sequence[str], *, input_text: str | None = None) -> CommandResult:
        result = self.run(argv, input_text=input_text)
        if not result.ok:
            raise CommandError(f"{shlex.join(result.argv)} failed ({result.returncode}): {result.output}")
        return result


class ServiceManager:
    """systemctl wrapper for the web server plus its config test command."""

    def __init__(self, runner: CommandRunner, tools: ToolPaths) -> None:
        self.runner = runner
        self.tools = tools

    def _systemctl(self, action: str) -> CommandResult:
        logger.info("%s %s", action.capitalize(), self.tools.service_name)
        return self.runner.run([self.tools.systemctl, action, self.tools.service_name])

    def stop(self) -> CommandResult:
        return self._systemctl("stop")

    def start(self) -> CommandResult:
        result = self._systemctl("start")
        if not result.ok:
            logger.error("Failed to start %s: %s", self.tools.service_name, result.output)
        return result

    def reload(self) -> CommandResult:
        return self._systemctl("reload")

    def test_config(self) -> CommandResult:
        return self.runner.run([self.tools.nginx, "-t"])

    @contextmanager
    def stopped(self) -> Generator[None, None, None]:
        """Hold the service stopped for the duration of the block.

        The service is started again on every exit path, including exceptions.
        """
        self.stop()
        try:
            yield
        finally:
            self.start()


def require_root() -> None:
    if not hasattr(os, "geteuid") or os.geteuid() != 0:
        raise PrivilegeError("This command must be run as root (use sudo)")
