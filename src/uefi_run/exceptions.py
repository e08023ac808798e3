"""Exception hierarchy for uefi-run.

All exceptions inherit from UefiRunError base class.

Hierarchy:
    UefiRunError (base)
    ├── PathSpecError          ← malformed --add-file token (before any I/O)
    ├── ImageError             ← boot image could not be built
    │   ├── ImageIoError       ← backing file / volume write failure
    │   ├── ImageFormatError   ← FAT formatting or mounting failed
    │   └── HostFileError      ← host file to copy is unreadable
    ├── SpawnError             ← QEMU binary missing or not executable
    ├── TerminationError       ← kill failed for a reason other than "already gone"
    └── SupervisorError        ← supervision invariant violated

Every error is fatal: the image is never booted half-built and the child is
never left running unsupervised.
"""

from __future__ import annotations

from typing import Any


class UefiRunError(Exception):
    """Base exception for all uefi-run errors with structured context.

    Attributes:
        message: Human-readable error message
        context: Dictionary of structured error context for logging/debugging
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class PathSpecError(UefiRunError):
    """File-placement token could not be parsed.

    Raised for empty tokens, empty host or image halves, tokens with more
    than one ``:`` and image paths that have no leaf or leave the image root.
    """


# =============================================================================
# Boot Image Errors
# =============================================================================


class ImageError(UefiRunError):
    """Boot image could not be built.

    Base class for all builder failures. Raised before QEMU is spawned.
    """


class ImageIoError(ImageError):
    """Backing file creation or a write inside the volume failed.

    Also raised when the backing file already exists, the builder never
    overwrites an existing image.
    """


class ImageFormatError(ImageError):
    """Formatting the backing file as FAT, or mounting it, failed."""


class HostFileError(ImageError):
    """Host file named by a file-placement token could not be read."""


# =============================================================================
# Process Errors
# =============================================================================


class SpawnError(UefiRunError):
    """QEMU process could not be started (not found, permission denied, ...)."""


class TerminationError(UefiRunError):
    """Forced termination failed for a reason other than the process being gone."""


class SupervisorError(UefiRunError):
    """Supervision invariant violated.

    Raised on an invalid process state transition, or when the child has
    still not produced an exit code after being killed and waited on.
    """
