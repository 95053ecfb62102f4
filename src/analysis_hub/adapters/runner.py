"""Bounded subprocess runner for command-line analysis tools."""

import asyncio
import logging
import os
import shutil
import signal
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from analysis_hub.adapters.base import AnalyzeOptions, CancellationToken
from analysis_hub.errors import AdapterBufferExceeded, AdapterFailed, AdapterTimeout, AdapterUnavailable

logger = logging.getLogger(__name__)

READ_CHUNK_BYTES = 64 * 1024

# Variables passed through to tools; everything else is withheld.
MINIMAL_ENV_KEYS = ("PATH", "HOME", "LANG", "LC_ALL", "TMPDIR", "SYSTEMROOT")


@dataclass
class ToolResult:
    """Captured output of one tool invocation."""

    argv: list[str]
    returncode: int
    stdout: bytes
    stderr: bytes
    duration_ms: int

    @property
    def stdout_text(self) -> str:
        return self.stdout.decode("utf-8", errors="replace")

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")

    def check(self, ok_codes: Iterable[int] = (0,)) -> "ToolResult":
        """Raise unless the exit code is one the tool uses for success.

        Many analyzers exit non-zero when they report findings, so callers
        pass the codes that still mean "ran to completion".
        """
        if self.returncode not in set(ok_codes):
            tail = self.stderr_text.strip().splitlines()[-5:]
            raise AdapterFailed(
                f"{os.path.basename(self.argv[0])} exited with {self.returncode}: {' | '.join(tail)}"
            )
        return self


def minimal_env(extra: Mapping[str, str] | None = None) -> dict[str, str]:
    """Build the environment handed to tool subprocesses."""
    env = {key: os.environ[key] for key in MINIMAL_ENV_KEYS if key in os.environ}
    env.update(extra or {})
    return env


def which(executable: str) -> str | None:
    """Resolve an executable on PATH."""
    return shutil.which(executable)


def _signal_group(proc: asyncio.subprocess.Process, sig: int) -> None:
    try:
        if hasattr(os, "killpg"):
            os.killpg(proc.pid, sig)
        elif sig == signal.SIGTERM:
            proc.terminate()
        else:
            proc.kill()
    except ProcessLookupError:
        logger.debug(f"Process {proc.pid} already exited")


async def terminate(
    proc: asyncio.subprocess.Process,
    grace_seconds: float,
    token: CancellationToken | None = None,
) -> None:
    """Send terminate, wait out the grace period, then kill.

    A forced cancellation on ``token`` skips the remaining grace period.
    """
    if proc.returncode is not None:
        return

    _signal_group(proc, signal.SIGTERM)
    if not (token and token.forced):
        waiters = [asyncio.ensure_future(proc.wait())]
        if token is not None:
            waiters.append(asyncio.ensure_future(token.wait_forced()))
        _, pending = await asyncio.wait(waiters, timeout=grace_seconds, return_when=asyncio.FIRST_COMPLETED)
        for waiter in pending:
            waiter.cancel()

    if proc.returncode is None:
        logger.debug(f"Killing process {proc.pid}")
        _signal_group(proc, getattr(signal, "SIGKILL", signal.SIGTERM))
        await proc.wait()


async def _collect(proc: asyncio.subprocess.Process, limit: int) -> tuple[bytes, bytes, int]:
    """Drain stdout and stderr into buffers that share one byte budget."""
    out, err = bytearray(), bytearray()
    used = 0

    async def pump(stream: asyncio.StreamReader | None, sink: bytearray) -> None:
        nonlocal used
        if stream is None:
            return
        while True:
            chunk = await stream.read(READ_CHUNK_BYTES)
            if not chunk:
                return
            used += len(chunk)
            if used > limit:
                raise AdapterBufferExceeded(f"tool output exceeded {limit} bytes")
            sink.extend(chunk)

    tasks = [
        asyncio.ensure_future(pump(proc.stdout, out)),
        asyncio.ensure_future(pump(proc.stderr, err)),
    ]
    try:
        await asyncio.gather(*tasks)
        returncode = await proc.wait()
    finally:
        for task in tasks:
            task.cancel()
    return bytes(out), bytes(err), returncode


async def run_tool(
    argv: list[str],
    options: AnalyzeOptions,
    *,
    cwd: str | None = None,
    env: Mapping[str, str] | None = None,
    timeout_seconds: float | None = None,
) -> ToolResult:
    """Run a tool with a minimal environment and bounded resources.

    Args:
        argv: Command line; ``argv[0]`` is resolved on PATH
        options: Run options supplying limits and the cancellation token
        cwd: Working directory, defaults to the project root
        env: Extra environment variables for this tool
        timeout_seconds: Override for ``options.timeout_seconds``

    Returns:
        ToolResult with captured output, whatever the exit code

    Raises:
        AdapterUnavailable: If the executable cannot be found
        AdapterTimeout: If the wall-clock budget is exceeded
        AdapterBufferExceeded: If stdout plus stderr exceed the cap
    """
    executable = which(argv[0])
    if executable is None:
        raise AdapterUnavailable(f"{argv[0]} not found on PATH")

    token = options.cancel_token
    if token is not None:
        token.raise_if_cancelled()

    timeout = timeout_seconds if timeout_seconds is not None else options.timeout_seconds
    command = [executable, *argv[1:]]
    logger.debug(f"Running {' '.join(command)}")

    start = time.monotonic()
    proc = await asyncio.create_subprocess_exec(
        *command,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        cwd=cwd or options.project_root,
        env=minimal_env(env),
        start_new_session=True,
    )

    try:
        stdout, stderr, returncode = await asyncio.wait_for(
            _collect(proc, options.max_output_bytes), timeout
        )
    except asyncio.TimeoutError:
        await terminate(proc, options.kill_grace_seconds, token)
        raise AdapterTimeout(f"{argv[0]} exceeded {timeout:.0f}s") from None
    except AdapterBufferExceeded:
        await terminate(proc, options.kill_grace_seconds, token)
        raise
    except asyncio.CancelledError:
        await terminate(proc, options.kill_grace_seconds, token)
        raise

    duration_ms = int((time.monotonic() - start) * 1000)
    logger.debug(f"{argv[0]} exited with {returncode} after {duration_ms}ms")
    return ToolResult(
        argv=command,
        returncode=returncode,
        stdout=stdout,
        stderr=stderr,
        duration_ms=duration_ms,
    )


async def tool_version(argv: list[str], timeout_seconds: float = 10.0) -> str:
    """Run a ``--version`` style command and return its first output line."""
    executable = which(argv[0])
    if executable is None:
        raise AdapterUnavailable(f"{argv[0]} not found on PATH")
    options = AnalyzeOptions(project_root=os.getcwd(), timeout_seconds=timeout_seconds)
    result = await run_tool(argv, options)
    text = result.stdout_text.strip() or result.stderr_text.strip()
    return text.splitlines()[0] if text else "unknown"
