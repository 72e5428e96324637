#!/usr/bin/env python3
"""Async command execution boundary for the Apple toolchain"""

import asyncio
import logging
import shutil
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

TIMEOUT_EXIT_CODE = -9
NOT_FOUND_EXIT_CODE = 127


@dataclass(frozen=True)
class CommandResult:
    args: Tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """stdout followed by stderr, the way the toolchain prints them to a terminal"""
        if self.stderr:
            return f"{self.stdout}\n{self.stderr}" if self.stdout else self.stderr
        return self.stdout


async def run_command(args: Sequence[str],
                      timeout: Optional[float] = None,
                      input_text: Optional[str] = None,
                      cwd: Optional[str] = None) -> CommandResult:
    """
    Run a command and capture its output. Never raises for process failures.

    Args:
        args: Program and arguments
        timeout: Seconds before the process is killed. None waits forever.
        input_text: Optional text written to the process's stdin
        cwd: Working directory for the process

    Returns:
        CommandResult. A timeout or a missing executable is reported as a
        failed result so callers can classify it like any other failure.
    """
    args = tuple(args)
    logger.debug("Running: %s", " ".join(args))

    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            stdin=asyncio.subprocess.PIPE if input_text is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
        )
    except FileNotFoundError:
        message = f"{args[0]} not found. Make sure Xcode and its command line tools are installed."
        logger.warning(message)
        return CommandResult(args, NOT_FOUND_EXIT_CODE, "", message)

    stdin_bytes = input_text.encode() if input_text is not None else None
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(stdin_bytes), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        stdout, stderr = await process.communicate()
        message = f"Command timed out after {timeout:g} seconds: {' '.join(args)}"
        logger.warning(message)
        return CommandResult(
            args,
            TIMEOUT_EXIT_CODE,
            stdout.decode(errors="replace"),
            (stderr.decode(errors="replace") + "\n" + message).strip(),
            timed_out=True,
        )

    result = CommandResult(
        args,
        process.returncode,
        stdout.decode(errors="replace"),
        stderr.decode(errors="replace"),
    )
    if not result.succeeded:
        logger.debug("Command exited with %s: %s", result.returncode, result.stderr.strip())
    return result


async def run_simctl(*args: str, timeout: Optional[float] = None) -> CommandResult:
    """Run `xcrun simctl <args>`"""
    return await run_command(["xcrun", "simctl", *args], timeout=timeout)


async def beautify(output: str, timeout: Optional[float] = None) -> str:
    """
    Pipe raw xcodebuild output through xcbeautify when it is installed.

    Returns the original text when xcbeautify is unavailable or fails.
    """
    executable = shutil.which("xcbeautify")
    if not executable:
        return output

    result = await run_command([executable, "--disable-colored-output"], timeout=timeout, input_text=output)
    if not result.succeeded or not result.stdout.strip():
        logger.debug("xcbeautify failed, using raw output")
        return output
    return result.stdout
