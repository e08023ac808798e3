"""Shared pytest fixtures for uefi-run tests."""

import stat
import sys
from collections.abc import Callable
from pathlib import Path

import pytest
from pyfatfs.PyFatFS import PyFatFS

skip_on_windows = pytest.mark.skipif(sys.platform == "win32", reason="requires POSIX shell scripts and signals")

EFI_PAYLOAD = b"MZ\x90\x00" + bytes(range(256)) * 16


@pytest.fixture
def efi_exe(tmp_path: Path) -> Path:
    """A stand-in UEFI executable on the host."""
    path = tmp_path / "app.efi"
    path.write_bytes(EFI_PAYLOAD)
    return path


@pytest.fixture
def image_path(tmp_path: Path) -> Path:
    """Location for a backing file that does not exist yet."""
    out_dir = tmp_path / "out"
    out_dir.mkdir()
    return out_dir / "image.fat"


@pytest.fixture
def fake_qemu(tmp_path: Path) -> Callable[..., Path]:
    """Factory for an executable shell script standing in for QEMU.

    The script records its arguments (one per line) to ``args_file`` and
    exits with ``exit_code``.
    """

    def _make(exit_code: int = 0, *, body: str = "") -> Path:
        script = tmp_path / f"fake-qemu-{exit_code}"
        args_file = tmp_path / "qemu-args.txt"
        script.write_text(
            "#!/bin/sh\n"
            f'for arg in "$@"; do echo "$arg" >> "{args_file}"; done\n'
            f"{body}\n"
            f"exit {exit_code}\n"
        )
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return script

    return _make


def read_volume_file(image: Path, image_path: str) -> bytes:
    """Open a closed image independently and read one file from it."""
    volume = PyFatFS(str(image))
    try:
        return volume.readbytes(image_path)
    finally:
        volume.close()


def volume_isdir(image: Path, image_path: str) -> bool:
    volume = PyFatFS(str(image))
    try:
        return volume.isdir(image_path)
    finally:
        volume.close()


def volume_listdir(image: Path, image_path: str) -> list[str]:
    volume = PyFatFS(str(image))
    try:
        return volume.listdir(image_path)
    finally:
        volume.close()
