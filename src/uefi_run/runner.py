"""Orchestrates one uefi-run invocation.

parse --add-file tokens → build image in a temp dir → spawn QEMU → supervise.

The image is fully written and its volume handle closed before QEMU is
spawned; QEMU expects unshared access to the backing file.
"""

from __future__ import annotations

import tempfile
from collections.abc import Sequence
from pathlib import Path

from uefi_run import constants
from uefi_run._logging import get_logger
from uefi_run.boot_image import build_boot_image
from uefi_run.models import QemuConfig, QemuDrive
from uefi_run.path_spec import parse_path_specs
from uefi_run.qemu_cmd import build_qemu_cmd
from uefi_run.supervisor import CancellationFlag, SupervisedProcess, cancellation_signals, supervise

logger = get_logger(__name__)


async def run_uefi(
    efi_executable: str | Path,
    *,
    bios_path: str | Path = constants.DEFAULT_BIOS_PATH,
    qemu_path: str = constants.DEFAULT_QEMU_PATH,
    size_mib: int = constants.DEFAULT_IMAGE_SIZE_MIB,
    add_files: Sequence[str] = (),
    qemu_args: Sequence[str] = (),
    direct_boot: bool = False,
) -> int:
    """Run a UEFI executable in QEMU and return QEMU's exit code.

    Args:
        efi_executable: UEFI executable on the host
        bios_path: Firmware image passed via -bios
        qemu_path: QEMU binary
        size_mib: Boot image size in MiB
        add_files: ``<host>[:<image>]`` tokens for extra files
        qemu_args: Arguments forwarded verbatim to QEMU
        direct_boot: Place the executable at EFI/Boot/BootX64.efi

    Returns:
        QEMU exit code

    Raises:
        PathSpecError: Malformed --add-file token (before any I/O)
        ImageError: Image could not be built (QEMU never started)
        SpawnError: QEMU could not be started
        TerminationError: QEMU could not be killed after cancellation
        SupervisorError: QEMU never produced an exit code
    """
    path_specs = parse_path_specs(add_files)

    with tempfile.TemporaryDirectory(prefix="uefi-run-") as temp_dir:
        image_path = await build_boot_image(
            Path(temp_dir) / constants.IMAGE_FILE_NAME,
            size_mib,
            efi_executable,
            path_specs,
            direct_boot=direct_boot,
        )

        config = QemuConfig(
            qemu_path=qemu_path,
            bios_path=Path(bios_path),
            drives=[QemuDrive(file=image_path)],
            user_args=list(qemu_args),
        )
        cmd = build_qemu_cmd(config)
        logger.debug("QEMU command", extra={"cmd": cmd})

        with cancellation_signals(CancellationFlag()) as cancel:
            process = await SupervisedProcess.spawn(cmd[0], cmd[1:])
            exit_code = await supervise(process, cancel)

    logger.info("QEMU exited", extra={"exit_code": exit_code})
    return exit_code
