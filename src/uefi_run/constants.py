"""Constants for uefi-run image layout, defaults and supervision timings."""

from pathlib import PurePosixPath
from typing import Final

# ============================================================================
# Image Layout
# ============================================================================

MIB: Final[int] = 1_048_576
"""Bytes per mebibyte. Image sizes are requested in MiB."""

MIN_IMAGE_SIZE_MIB: Final[int] = 1
"""Smallest image the builder will format."""

SECTOR_SIZE: Final[int] = 512
"""Logical sector size of the formatted volume."""

FAT12_MAX_SECTORS: Final[int] = 8400
"""Volumes below this sector count are formatted as FAT12 (Microsoft sizing table)."""

FAT16_MAX_BYTES: Final[int] = 512 * MIB
"""Volumes up to this size are formatted as FAT16, larger ones as FAT32."""

IMAGE_FILE_NAME: Final[str] = "image.fat"
"""Name of the backing file inside the temporary directory."""

RUN_EFI_PATH: Final[PurePosixPath] = PurePosixPath("run.efi")
"""Executable location in default mode (started by startup.nsh)."""

DIRECT_BOOT_EFI_PATH: Final[PurePosixPath] = PurePosixPath("EFI/Boot/BootX64.efi")
"""Executable location in direct-boot mode (firmware default boot entry)."""

STARTUP_SCRIPT_PATH: Final[PurePosixPath] = PurePosixPath("startup.nsh")
"""EFI shell script executed automatically on boot."""

# ============================================================================
# QEMU Defaults
# ============================================================================

DEFAULT_BIOS_PATH: Final[str] = "OVMF.fd"
DEFAULT_QEMU_PATH: Final[str] = "qemu-system-x86_64"
DEFAULT_IMAGE_SIZE_MIB: Final[int] = 10

# ============================================================================
# Supervision Timings
# ============================================================================

POLL_INTERVAL_SECONDS: Final[float] = 0.5
"""Upper bound on how long a cancellation request waits to be noticed."""

GRACE_PERIOD_SECONDS: Final[float] = 1.0
"""Extra wait after cancellation before the child is killed."""

FINAL_WAIT_SECONDS: Final[float] = 1.0
"""Wait after the forced kill. Its result is authoritative."""
