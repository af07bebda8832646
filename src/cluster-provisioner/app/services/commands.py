"""Async subprocess execution for CLI tooling (git, kubectl, terraform)."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

from shared.observability import get_logger

logger = get_logger(__name__)


class CommandError(Exception):
    """Raised when a command exits non-zero."""

    def __init__(self, args: list[str], returncode: int, stderr: str):
        self.args_list = args
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"{Path(args[0]).name} {' '.join(args[1:2])} exited with {returncode}: {stderr.strip()}")


async def run_command(
    args: list[str | Path],
    cwd: Path | None = None,
    env: dict[str, str] | None = None,
    timeout: float | None = None,
) -> str:
    """Run a command to completion and return its stdout.

    Args:
        args: Program and arguments
        cwd: Working directory
        env: Variables layered over the current process environment
        timeout: Seconds before the process is killed

    Raises:
        CommandError: On non-zero exit
        asyncio.TimeoutError: If the timeout elapses
    """
    argv = [str(a) for a in args]
    logger.debug("Running command", command=argv[0], argv=argv[1:3], cwd=str(cwd) if cwd else None)

    process = await asyncio.create_subprocess_exec(
        *argv,
        cwd=str(cwd) if cwd else None,
        env={**os.environ, **(env or {})},
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise

    if process.returncode != 0:
        raise CommandError(argv, process.returncode, stderr.decode(errors="replace"))
    return stdout.decode(errors="replace")
