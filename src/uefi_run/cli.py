"""Command-line interface for uefi-run.

Usage:
    uefi-run app.efi                                  # Boot app.efi in QEMU
    uefi-run -b OVMF.fd -s 32 app.efi                 # Custom firmware and image size
    uefi-run -f data.bin:boot/data.bin app.efi        # Extra file at a nested path
    uefi-run app.efi -serial stdio -m 512             # Trailing args go to QEMU
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import NoReturn

import click
from pydantic import ValidationError

from uefi_run import __version__
from uefi_run._logging import configure_logging
from uefi_run.exceptions import (
    ImageError,
    PathSpecError,
    SpawnError,
    SupervisorError,
    TerminationError,
    UefiRunError,
)
from uefi_run.runner import run_uefi
from uefi_run.settings import Settings

# Exit codes following Unix conventions
EXIT_CLI_ERROR = 2
EXIT_UEFI_RUN_ERROR = 125


def format_error(title: str, message: str, suggestions: list[str] | None = None) -> str:
    """Format an error message following What → Why → Fix pattern.

    Args:
        title: Short error title
        message: Detailed explanation
        suggestions: Optional list of suggestions to fix the issue

    Returns:
        Formatted error string
    """
    lines = [
        click.style(f"Error: {title}", fg="red", bold=True),
        "",
        f"  {message}",
    ]

    if suggestions:
        lines.extend(["", "  Suggestions:"])
        lines.extend(f"    • {suggestion}" for suggestion in suggestions)

    return "\n".join(lines)


def report_error(error: UefiRunError) -> int:
    """Print ``error`` for the user and return the exit code to use."""
    match error:
        case PathSpecError():
            click.echo(
                format_error(
                    "Invalid --add-file argument",
                    error.message,
                    ["Use <host-path> or <host-path>:<image-path>, with at most one ':'"],
                ),
                err=True,
            )
            return EXIT_CLI_ERROR
        case ImageError():
            title, suggestions = "Boot image could not be built", ["Check that every input file exists and is readable"]
        case SpawnError():
            title, suggestions = "QEMU could not be started", ["Check that QEMU is installed or pass -q/--qemu"]
        case TerminationError():
            title, suggestions = "QEMU could not be stopped", ["Kill the QEMU process manually"]
        case SupervisorError():
            title, suggestions = "QEMU did not exit", ["Kill the QEMU process manually"]
        case _:
            title, suggestions = "uefi-run error", None

    click.echo(format_error(title, error.message, suggestions), err=True)
    return EXIT_UEFI_RUN_ERROR


@click.command(
    context_settings={
        "help_option_names": ["-h", "--help"],
        "ignore_unknown_options": True,
        "allow_interspersed_args": False,
    }
)
@click.argument("efi_exe", type=click.Path(dir_okay=False))
@click.argument("qemu_args", nargs=-1, type=click.UNPROCESSED)
@click.option("-b", "--bios", "bios_path", help="BIOS image  [default: OVMF.fd]")
@click.option("-q", "--qemu", "qemu_path", help="Path to qemu executable  [default: qemu-system-x86_64]")
@click.option("-s", "--size", "size_mib", type=click.IntRange(min=1), help="Size of the image in MiB  [default: 10]")
@click.option(
    "-f",
    "--add-file",
    "add_files",
    multiple=True,
    metavar="<HOST>[:<IMAGE>]",
    help="Additional file to add to the image (repeatable). Defaults to the image root under the same name.",
)
@click.option("-d", "--boot", "direct_boot", is_flag=True, help="Place the executable at EFI/Boot/BootX64.efi")
@click.option("--quiet", is_flag=True, help="Only log errors")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.version_option(__version__, "-V", "--version", prog_name="uefi-run")
def main(
    efi_exe: str,
    qemu_args: tuple[str, ...],
    bios_path: str | None,
    qemu_path: str | None,
    size_mib: int | None,
    add_files: tuple[str, ...],
    direct_boot: bool,
    quiet: bool,
    verbose: bool,
) -> NoReturn:
    """Run a UEFI executable in QEMU.

    Builds a FAT boot image holding EFI_EXE and a startup.nsh that starts
    it, then boots the image with QEMU. Arguments after EFI_EXE are passed
    to QEMU unchanged. The exit code is QEMU's exit code.

    Defaults can be set with UEFI_RUN_BIOS_PATH, UEFI_RUN_QEMU_PATH and
    UEFI_RUN_SIZE_MIB.
    """
    configure_logging(level=logging.DEBUG if verbose else None, quiet=quiet)

    try:
        settings = Settings()
    except ValidationError as exc:
        raise click.UsageError(f"Invalid UEFI_RUN_* environment: {exc}") from exc

    try:
        exit_code = asyncio.run(
            run_uefi(
                efi_exe,
                bios_path=bios_path or settings.bios_path,
                qemu_path=qemu_path or settings.qemu_path,
                size_mib=size_mib if size_mib is not None else settings.size_mib,
                add_files=add_files,
                qemu_args=qemu_args,
                direct_boot=direct_boot,
            )
        )
    except UefiRunError as e:
        exit_code = report_error(e)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
