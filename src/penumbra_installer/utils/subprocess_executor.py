"""Subprocess execution utilities with automatic logging."""

import asyncio
import subprocess
from collections.abc import AsyncIterator
from pathlib import Path

from penumbra_installer.logger import get_logger

logger = get_logger(__name__)


class SubprocessExecutor:
    """Executes subprocess commands with automatic debug logging."""

    @staticmethod
    async def run(
        *args: str,
        cwd: Path | str | None = None,
        env: dict[str, str] | None = None,
        check: bool = False,
        timeout: float | None = None,
    ) -> subprocess.CompletedProcess[bytes]:
        """
        Execute a subprocess command with automatic debug logging.

        Args:
            *args: Command arguments
            cwd: Working directory
            env: Environment variables
            check: Whether to raise exception on non-zero exit code
            timeout: Timeout in seconds

        Returns:
            CompletedProcess with returncode, stdout, stderr

        Raises:
            subprocess.CalledProcessError: If check=True and returncode != 0
            asyncio.TimeoutError: If timeout is exceeded
        """
        cmd_str = " ".join(args)
        logger.debug("Executing subprocess", command=cmd_str)

        process = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd) if cwd else None,
            env=env,
        )

        try:
            if timeout:
                stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
            else:
                stdout, stderr = await process.communicate()
        except asyncio.TimeoutError:
            logger.error(f"Subprocess timeout after {timeout}s: {cmd_str}")
            process.kill()
            raise

        if stdout:
            logger.debug("Subprocess stdout", output=stdout.decode("utf-8", errors="replace"))
        if stderr:
            logger.debug("Subprocess stderr", output=stderr.decode("utf-8", errors="replace"))

        assert process.returncode is not None
        result = subprocess.CompletedProcess(args, process.returncode, stdout, stderr)

        if check and process.returncode != 0:
            raise subprocess.CalledProcessError(process.returncode, args, stdout, stderr)

        return result

    @staticmethod
    async def iter_lines(
        *args: str,
        env: dict[str, str] | None = None,
        encoding: str = "utf-8",
    ) -> AsyncIterator[str]:
        """
        Yield output lines of a long-running subprocess as they are produced.

        stderr is merged into stdout. The process is killed if the consumer
        stops iterating early (e.g. on cancellation).

        Raises:
            subprocess.CalledProcessError: If the process exits non-zero
        """
        logger.debug("Streaming subprocess", command=" ".join(args))
        process = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            env=env,
        )
        assert process.stdout is not None

        try:
            async for raw in process.stdout:
                yield raw.decode(encoding, errors="replace").rstrip("\r\n")
            await process.wait()
        finally:
            if process.returncode is None:
                process.kill()
                await process.wait()

        if process.returncode != 0:
            raise subprocess.CalledProcessError(process.returncode, args)
