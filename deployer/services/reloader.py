"""Service reload strategies and the command runner they execute through.

Production code uses ``SubprocessCommandRunner``, which runs commands with
``asyncio.create_subprocess_exec`` and a timeout. Tests use
``InMemoryCommandRunner``, which records commands and replays canned results.
"""

from __future__ import annotations

import asyncio
import enum
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

import structlog

from deployer.errors import InvalidArgumentError, ReloadError, UnsupportedTargetTypeError

logger = structlog.get_logger()

_OUTPUT_LOG_LIMIT = 2000


@dataclass(frozen=True)
class CommandResult:
    """Exit status and combined stdout+stderr of a finished command."""

    returncode: int
    output: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner(Protocol):
    """Protocol for running an external command to completion."""

    async def run(self, args: Sequence[str]) -> CommandResult:
        """Run *args* and return its result.

        Raises:
            ReloadError: If the command cannot be started or times out.
        """
        ...


class SubprocessCommandRunner:
    """Run commands as child processes, bounded by *timeout* seconds."""

    def __init__(self, timeout: float = 60.0) -> None:
        self._timeout = timeout

    async def run(self, args: Sequence[str]) -> CommandResult:
        """Execute *args* without a shell and capture stdout and stderr together."""
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as exc:
            raise ReloadError(f"Failed to start command {' '.join(args)}: {exc}") from exc

        try:
            stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except TimeoutError:
            proc.kill()
            await proc.wait()
            raise ReloadError(
                f"Command {' '.join(args)} timed out after {self._timeout}s"
            ) from None

        return CommandResult(
            returncode=proc.returncode if proc.returncode is not None else -1,
            output=stdout.decode(errors="replace"),
        )


class InMemoryCommandRunner:
    """Test double that records commands and returns a configurable result."""

    def __init__(self, result: CommandResult | None = None) -> None:
        self.commands: list[list[str]] = []
        self.result = result or CommandResult(returncode=0, output="")

    async def run(self, args: Sequence[str]) -> CommandResult:
        """Record *args* and return the configured result."""
        self.commands.append(list(args))
        return self.result


class ReloadStrategy(enum.Enum):
    """The closed set of services a deployment can reload."""

    NGINX = "nginx"
    PM2 = "pm2"

    @classmethod
    def from_target_type(cls, target_type: str) -> ReloadStrategy:
        """Map a repository target's ``targetType`` to a strategy.

        Raises:
            UnsupportedTargetTypeError: If the tag names no known strategy.
        """
        try:
            return cls(target_type)
        except ValueError:
            raise UnsupportedTargetTypeError(target_type) from None

    def command(self, process_name: str = "") -> list[str]:
        """Return the command line that reloads this service.

        Raises:
            InvalidArgumentError: If a pm2 reload has no process name.
        """
        if self is ReloadStrategy.NGINX:
            return ["systemctl", "reload", "nginx"]

        if not process_name:
            raise InvalidArgumentError("targetProcessName cannot be empty for pm2 targets")
        return ["pm2", "reload", process_name]


async def reload_target(
    runner: CommandRunner,
    target_type: str,
    process_name: str = "",
) -> CommandResult:
    """Reload the service behind a repository target.

    Resolves the strategy before anything runs, so an unknown tag or a
    missing pm2 process name never reaches the command runner.

    Raises:
        UnsupportedTargetTypeError: If *target_type* is not a known strategy.
        InvalidArgumentError: If a pm2 target has no process name.
        ReloadError: If the command fails to run or exits non-zero.
    """
    strategy = ReloadStrategy.from_target_type(target_type)
    args = strategy.command(process_name)

    result = await runner.run(args)
    if not result.ok:
        logger.error(
            "service_reload_failed",
            strategy=strategy.value,
            returncode=result.returncode,
            output=result.output[:_OUTPUT_LOG_LIMIT],
        )
        raise ReloadError(
            f"Failed to reload {strategy.value} (exit code {result.returncode}): "
            f"{result.output.strip()}",
            output=result.output,
        )

    logger.info("service_reloaded", strategy=strategy.value, process=process_name or None)
    return result
