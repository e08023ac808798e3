"""QEMU process supervision.

One child, one event loop, one cancellation flag. The escalation protocol
guarantees the child ends with an exit code:

    WAIT ──exited──────────────────────────────────────────► DONE
      │ cancelled
      ▼
    GRACE ──exited─────────────────────────────────────────► DONE
      │ still running
      ▼
    KILL ──► FINAL_WAIT ──exited───────────────────────────► DONE
                  │ still running
                  ▼
            SupervisorError

Signal handlers only set the CancellationFlag. The flag is read between
polls, never while a poll is in flight.
"""

from __future__ import annotations

import asyncio
import contextlib
import signal
import threading
from collections.abc import Iterator, Sequence
from enum import Enum
from typing import Protocol

from uefi_run import constants
from uefi_run._logging import get_logger
from uefi_run.exceptions import SpawnError, SupervisorError
from uefi_run.process import ProcessWrapper

logger = get_logger(__name__)


class ProcessState(Enum):
    """Lifecycle of the supervised child. Transitions only move forward."""

    RUNNING = "running"
    KILLED = "killed"
    EXITED = "exited"


VALID_STATE_TRANSITIONS: dict[ProcessState, set[ProcessState]] = {
    ProcessState.RUNNING: {ProcessState.KILLED, ProcessState.EXITED},
    ProcessState.KILLED: {ProcessState.EXITED},
    ProcessState.EXITED: set(),
}


class EscalationPhase(Enum):
    """Phases of the wait → grace → kill → final-wait protocol."""

    WAIT = "wait"
    GRACE = "grace"
    KILL = "kill"
    FINAL_WAIT = "final_wait"
    DONE = "done"


class CancellationFlag:
    """One-shot cancellation request, set from a signal handler.

    Backed by threading.Event so setting and reading are atomic whichever
    way the handler was installed. There is no reset.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def set(self) -> None:
        self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()


class Supervisable(Protocol):
    """Primitives the escalation protocol drives."""

    async def poll(self, timeout: float) -> int | None: ...

    async def terminate(self) -> None: ...


class SupervisedProcess:
    """A spawned child with a forward-only state and a cached exit code."""

    def __init__(self, process: ProcessWrapper, name: str = "qemu") -> None:
        self.process = process
        self.name = name
        self._state = ProcessState.RUNNING
        self._exit_code: int | None = None

    @classmethod
    async def spawn(cls, executable: str, args: Sequence[str]) -> SupervisedProcess:
        """Start ``executable`` with ``args``, inheriting stdio.

        Raises:
            SpawnError: Executable missing or not launchable. Never retried.
        """
        try:
            async_proc = await asyncio.create_subprocess_exec(executable, *args)
        except OSError as e:
            raise SpawnError(
                f"Failed to start {executable}: {e}",
                context={"executable": executable, "args": list(args), "error_type": type(e).__name__},
            ) from e

        logger.info("Process started", extra={"executable": executable, "pid": async_proc.pid})
        return cls(ProcessWrapper(async_proc), name=executable)

    @property
    def state(self) -> ProcessState:
        return self._state

    @property
    def exit_code(self) -> int | None:
        return self._exit_code

    def _transition(self, new_state: ProcessState) -> None:
        allowed = VALID_STATE_TRANSITIONS[self._state]
        if new_state not in allowed:
            raise SupervisorError(
                f"Invalid state transition: {self._state.value} -> {new_state.value}",
                context={
                    "pid": self.process.pid,
                    "current_state": self._state.value,
                    "target_state": new_state.value,
                    "allowed_transitions": [s.value for s in allowed],
                },
            )
        logger.debug(
            "Process state transition",
            extra={"pid": self.process.pid, "old_state": self._state.value, "new_state": new_state.value},
        )
        self._state = new_state

    async def poll(self, timeout: float) -> int | None:
        """Wait up to ``timeout`` seconds for the child to exit.

        Returns:
            None if still running, else the exit code. A child terminated
            by a signal carries no exit code and reports 0.
        """
        if self._exit_code is not None:
            return self._exit_code
        try:
            returncode = await self.process.wait_with_timeout(timeout)
        except TimeoutError:
            return None

        self._exit_code = returncode if returncode >= 0 else 0
        self._transition(ProcessState.EXITED)
        logger.debug(
            "Process exited",
            extra={"pid": self.process.pid, "returncode": returncode, "exit_code": self._exit_code},
        )
        return self._exit_code

    async def terminate(self) -> None:
        """Force the child to stop. Already-gone counts as success.

        Raises:
            TerminationError: Kill failed for any other reason
        """
        if self._state is ProcessState.EXITED:
            return
        logger.warning(f"Killing {self.name}", extra={"pid": self.process.pid})
        await self.process.kill()
        if self._state is ProcessState.RUNNING:
            self._transition(ProcessState.KILLED)


async def supervise(
    process: Supervisable,
    cancel: CancellationFlag,
    *,
    poll_interval: float = constants.POLL_INTERVAL_SECONDS,
    grace_period: float = constants.GRACE_PERIOD_SECONDS,
    final_wait: float = constants.FINAL_WAIT_SECONDS,
) -> int:
    """Drive ``process`` through the escalation protocol until it has an exit code.

    Args:
        process: Child to supervise
        cancel: Flag set by the termination signal handler
        poll_interval: Length of each WAIT poll
        grace_period: Single GRACE poll after cancellation
        final_wait: Poll after the forced kill, authoritative

    Returns:
        Exit code of the child

    Raises:
        TerminationError: Kill failed
        SupervisorError: Child still running after FINAL_WAIT
    """
    phase = EscalationPhase.WAIT
    exit_code: int | None = None

    while phase is not EscalationPhase.DONE:
        match phase:
            case EscalationPhase.WAIT:
                exit_code = await process.poll(poll_interval)
                if exit_code is not None:
                    phase = EscalationPhase.DONE
                elif cancel.is_set():
                    logger.warning("uefi-run terminating...")
                    phase = EscalationPhase.GRACE
            case EscalationPhase.GRACE:
                exit_code = await process.poll(grace_period)
                phase = EscalationPhase.DONE if exit_code is not None else EscalationPhase.KILL
            case EscalationPhase.KILL:
                await process.terminate()
                phase = EscalationPhase.FINAL_WAIT
            case EscalationPhase.FINAL_WAIT:
                exit_code = await process.poll(final_wait)
                phase = EscalationPhase.DONE

    # Only FINAL_WAIT reaches DONE without an exit code
    if exit_code is None:
        raise SupervisorError(
            "Process should have exited by now but did not",
            context={"final_wait": final_wait},
        )
    return exit_code


@contextlib.contextmanager
def cancellation_signals(
    cancel: CancellationFlag,
    signals: Sequence[signal.Signals] = (signal.SIGINT, signal.SIGTERM),
) -> Iterator[CancellationFlag]:
    """Route termination signals to ``cancel`` for the duration of the block.

    Must be entered from within the running event loop. Handlers only set
    the flag. Whatever handler was installed before (for example
    asyncio.Runner's SIGINT handler) is reinstated on exit.
    """
    loop = asyncio.get_running_loop()
    loop_handled: list[signal.Signals] = []
    previous: dict[signal.Signals, signal.Handlers | int | None] = {}

    def _handler(signum: int, frame: object) -> None:
        cancel.set()

    for sig in signals:
        original = signal.getsignal(sig)
        try:
            loop.add_signal_handler(sig, cancel.set)
            loop_handled.append(sig)
            previous[sig] = original
        except (NotImplementedError, RuntimeError):
            # Windows event loops, or a loop outside the main thread
            try:
                previous[sig] = signal.signal(sig, _handler)
            except ValueError:
                logger.warning(f"Cannot install handler for {sig.name}; cancellation disabled for it")

    try:
        yield cancel
    finally:
        for sig in loop_handled:
            # remove_signal_handler() resets to the default, not to the original
            loop.remove_signal_handler(sig)
        for sig, handler in previous.items():
            signal.signal(sig, handler if handler is not None else signal.SIG_DFL)
