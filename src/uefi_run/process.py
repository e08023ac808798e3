"""PID-reuse safe wrapper around the asyncio QEMU child process.

psutil pins the process identity at spawn time, so a forced kill issued
after the child has already been reaped can never hit an unrelated process
that reused its PID.
"""

import asyncio
import contextlib

import psutil

from uefi_run._logging import get_logger
from uefi_run.exceptions import TerminationError

logger = get_logger(__name__)


class ProcessWrapper:
    """Wraps asyncio.subprocess.Process with psutil.Process for safe kills."""

    def __init__(self, async_proc: asyncio.subprocess.Process) -> None:
        """Wrap asyncio process with psutil for PID-safe signalling.

        Args:
            async_proc: asyncio subprocess.Process instance
        """
        self.async_proc = async_proc
        self.psutil_proc: psutil.Process | None = None

        if async_proc.pid:
            with contextlib.suppress(psutil.NoSuchProcess, psutil.AccessDenied):
                # Process already died or inaccessible
                self.psutil_proc = psutil.Process(async_proc.pid)

    @property
    def pid(self) -> int | None:
        """Process ID."""
        return self.async_proc.pid

    @property
    def returncode(self) -> int | None:
        """Process return code (None if still running)."""
        return self.async_proc.returncode

    async def wait(self) -> int:
        """Wait for process to complete.

        Returns:
            Process return code
        """
        return await self.async_proc.wait()

    async def wait_with_timeout(self, timeout: float) -> int:
        """Wait for process exit, at most ``timeout`` seconds.

        Returns:
            Process return code

        Raises:
            TimeoutError: If process doesn't exit within timeout
        """
        return await asyncio.wait_for(self.wait(), timeout=timeout)

    async def kill(self) -> None:
        """Kill process (SIGKILL on POSIX, TerminateProcess on Windows).

        A process that no longer exists counts as killed.

        Raises:
            TerminationError: Kill was refused (e.g. access denied)
        """
        if self.returncode is not None:
            return
        try:
            if self.psutil_proc is not None:
                await asyncio.to_thread(self.psutil_proc.kill)
            else:
                self.async_proc.kill()
        except (psutil.NoSuchProcess, ProcessLookupError):
            logger.debug("Process already gone before kill", extra={"pid": self.pid})
        except (psutil.Error, OSError) as e:
            raise TerminationError(
                f"Unable to kill process {self.pid}: {e}",
                context={"pid": self.pid, "error_type": type(e).__name__},
            ) from e
