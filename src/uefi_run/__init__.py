"""uefi-run: run UEFI executables in QEMU.

Builds a small FAT boot image around a UEFI executable, boots it with QEMU
and returns QEMU's exit code.

Quick Start:
    ```python
    import asyncio

    from uefi_run import run_uefi

    exit_code = asyncio.run(
        run_uefi(
            "target/x86_64-unknown-uefi/debug/app.efi",
            bios_path="/usr/share/OVMF/OVMF_CODE.fd",
            add_files=["config.toml:app/config.toml"],
            qemu_args=["-serial", "stdio"],
        )
    )
    ```

Building an image only:
    ```python
    from uefi_run import BootImage, mib_to_bytes

    with BootImage.create("image.fat", mib_to_bytes(10)) as image:
        image.write_file("EFI/Boot/BootX64.efi", payload)
    ```
"""

from uefi_run.boot_image import BootImage, build_boot_image, mib_to_bytes, startup_script
from uefi_run.exceptions import (
    HostFileError,
    ImageError,
    ImageFormatError,
    ImageIoError,
    PathSpecError,
    SpawnError,
    SupervisorError,
    TerminationError,
    UefiRunError,
)
from uefi_run.models import PathSpec, QemuConfig, QemuDrive
from uefi_run.path_spec import parse_path_spec, parse_path_specs
from uefi_run.qemu_cmd import build_qemu_cmd
from uefi_run.runner import run_uefi
from uefi_run.supervisor import CancellationFlag, EscalationPhase, SupervisedProcess, supervise

__all__ = [
    "BootImage",
    "CancellationFlag",
    "EscalationPhase",
    "HostFileError",
    "ImageError",
    "ImageFormatError",
    "ImageIoError",
    "PathSpec",
    "PathSpecError",
    "QemuConfig",
    "QemuDrive",
    "SpawnError",
    "SupervisedProcess",
    "SupervisorError",
    "TerminationError",
    "UefiRunError",
    "build_boot_image",
    "build_qemu_cmd",
    "mib_to_bytes",
    "parse_path_spec",
    "parse_path_specs",
    "run_uefi",
    "startup_script",
    "supervise",
]

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("uefi-run")
except PackageNotFoundError:
    __version__ = "0.0.0.dev0"
