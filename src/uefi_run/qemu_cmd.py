"""QEMU command line builder.

Produces the invocation expected by standard UEFI firmware boot:

    <qemu> -bios <firmware> -drive file=<image>,index=0,media=disk,format=raw -net none [user args...]
"""

from uefi_run.models import QemuConfig, QemuDrive


def drive_arg(index: int, drive: QemuDrive) -> str:
    """Format one ``-drive`` value."""
    return f"file={drive.file},index={index},media={drive.media},format={drive.format}"


def build_qemu_cmd(config: QemuConfig) -> list[str]:
    """Build the full argument vector, binary first.

    Drives are numbered in order. User arguments always come last so they
    can override anything set before them.
    """
    cmd = [config.qemu_path, "-bios", str(config.bios_path)]
    for index, drive in enumerate(config.drives):
        cmd.extend(["-drive", drive_arg(index, drive)])
    cmd.extend(config.additional_args)
    cmd.extend(config.user_args)
    return cmd
