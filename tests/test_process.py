"""Tests for ProcessWrapper.kill error handling.

The kill primitives are replaced with mocks so both the "already gone" and
the "refused" outcomes can be produced on demand.
"""

from unittest.mock import MagicMock

import psutil
import pytest

from uefi_run.exceptions import TerminationError
from uefi_run.process import ProcessWrapper
from uefi_run.supervisor import ProcessState, SupervisedProcess

# ============================================================================
# Helpers
# ============================================================================


def make_wrapper(*, psutil_error: Exception | None = None, async_error: Exception | None = None) -> ProcessWrapper:
    """Wrapper around a running fake child whose kill raises the given error.

    With ``psutil_error`` the kill goes through a mocked psutil.Process,
    otherwise through asyncio's Process.kill.
    """
    async_proc = MagicMock()
    async_proc.pid = None
    async_proc.returncode = None
    async_proc.kill.side_effect = async_error

    wrapper = ProcessWrapper(async_proc)
    if psutil_error is not None:
        wrapper.psutil_proc = MagicMock()
        wrapper.psutil_proc.kill.side_effect = psutil_error
    return wrapper


# ============================================================================
# ProcessWrapper.kill
# ============================================================================


class TestKill:
    async def test_no_such_process_is_success(self) -> None:
        wrapper = make_wrapper(psutil_error=psutil.NoSuchProcess(4242))

        await wrapper.kill()

        wrapper.psutil_proc.kill.assert_called_once_with()
        wrapper.async_proc.kill.assert_not_called()

    async def test_process_lookup_error_is_success(self) -> None:
        wrapper = make_wrapper(async_error=ProcessLookupError())

        await wrapper.kill()

        wrapper.async_proc.kill.assert_called_once_with()

    async def test_access_denied_raises(self) -> None:
        wrapper = make_wrapper(psutil_error=psutil.AccessDenied(4242))

        with pytest.raises(TerminationError) as exc_info:
            await wrapper.kill()

        assert exc_info.value.context["error_type"] == "AccessDenied"
        assert isinstance(exc_info.value.__cause__, psutil.AccessDenied)

    async def test_os_error_raises(self) -> None:
        wrapper = make_wrapper(async_error=PermissionError("operation not permitted"))

        with pytest.raises(TerminationError, match="operation not permitted"):
            await wrapper.kill()

    async def test_exited_process_is_not_signalled(self) -> None:
        wrapper = make_wrapper(psutil_error=psutil.AccessDenied(4242))
        wrapper.async_proc.returncode = 0

        await wrapper.kill()

        wrapper.psutil_proc.kill.assert_not_called()


class TestTerminateThroughWrapper:
    async def test_vanished_child_counts_as_killed(self) -> None:
        process = SupervisedProcess(make_wrapper(psutil_error=psutil.NoSuchProcess(4242)))

        await process.terminate()

        assert process.state is ProcessState.KILLED

    async def test_refused_kill_keeps_running_state(self) -> None:
        process = SupervisedProcess(make_wrapper(psutil_error=psutil.AccessDenied(4242)))

        with pytest.raises(TerminationError):
            await process.terminate()

        assert process.state is ProcessState.RUNNING
