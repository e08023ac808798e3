"""Bootable FAT image builder.

Builds the raw disk QEMU boots from:

    image.fat (FAT12/16/32, chosen from the size)
    ├── startup.nsh             ← EFI shell script starting the executable
    ├── run.efi                 ← the executable (default mode)
    ├── EFI/Boot/BootX64.efi    ← the executable (direct-boot mode)
    └── <user files>            ← from --add-file, at arbitrary nested paths

The volume handle is owned by BootImage and must be closed before QEMU
opens the backing file. Use BootImage as a context manager, or go through
build_boot_image() which always closes it.
"""

from __future__ import annotations

import functools
from collections.abc import Iterable
from pathlib import Path, PurePath, PurePosixPath
from types import TracebackType

import aiofiles
import fs.errors
import fs.path
from pyfatfs._exceptions import PyFATException
from pyfatfs.PyFat import PyFat
from pyfatfs.PyFatFS import PyFatFS

from uefi_run import constants
from uefi_run._logging import get_logger
from uefi_run.exceptions import HostFileError, ImageError, ImageFormatError, ImageIoError
from uefi_run.models import PathSpec

logger = get_logger(__name__)


def mib_to_bytes(size_mib: int) -> int:
    """Convert an image size in MiB to bytes (exact, no rounding).

    Raises:
        ImageError: Size below the minimum image size
    """
    if size_mib < constants.MIN_IMAGE_SIZE_MIB:
        raise ImageError(
            f"Image size must be at least {constants.MIN_IMAGE_SIZE_MIB} MiB, got {size_mib}",
            context={"size_mib": size_mib},
        )
    return size_mib * constants.MIB


def select_fat_type(size_bytes: int) -> int:
    """Pick the FAT variant for a volume of ``size_bytes``.

    Follows the Microsoft sizing table: FAT12 for tiny volumes, FAT16 up to
    512 MiB, FAT32 above.
    """
    if size_bytes // constants.SECTOR_SIZE < constants.FAT12_MAX_SECTORS:
        return PyFat.FAT_TYPE_FAT12
    if size_bytes <= constants.FAT16_MAX_BYTES:
        return PyFat.FAT_TYPE_FAT16
    return PyFat.FAT_TYPE_FAT32


def startup_script(executable_path: PurePath) -> bytes:
    """Render startup.nsh for an executable placed at ``executable_path``.

    The EFI shell runs this from the first filesystem on boot.
    """
    parts = [part for part in PurePosixPath(executable_path).parts if part != "/"]
    lines = ["@echo -off", "fs0:", "\\" + "\\".join(parts)]
    return ("\r\n".join(lines) + "\r\n").encode("ascii")


def _volume_path(image_path: str | PurePath) -> tuple[list[str], str]:
    """Split a destination into parent components and leaf, dropping root separators."""
    path = PurePosixPath(image_path)
    parts = [part for part in path.parts if part != path.root]
    if not parts:
        raise ImageIoError(
            f"Image path has no file name: {str(image_path)!r}",
            context={"image_path": str(image_path)},
        )
    return parts[:-1], parts[-1]


class BootImage:
    """Fixed-size backing file formatted as FAT, with an open volume handle.

    Example:
        >>> with BootImage.create(tmp / "image.fat", mib_to_bytes(10)) as image:
        ...     image.write_file("EFI/Boot/BootX64.efi", payload)
    """

    def __init__(self, path: Path, size_bytes: int, volume: PyFatFS) -> None:
        self.path = path
        self.size_bytes = size_bytes
        self._volume: PyFatFS | None = volume

    @classmethod
    def create(cls, path: str | Path, size_bytes: int) -> BootImage:
        """Create, size and format a new backing file and open it.

        Args:
            path: Backing file to create. Must not exist yet.
            size_bytes: Exact size of the backing file

        Raises:
            ImageIoError: File exists or could not be created/sized
            ImageFormatError: FAT formatting or mounting failed
        """
        path = Path(path)
        try:
            with path.open("xb") as backing:
                backing.truncate(size_bytes)
        except OSError as e:
            raise ImageIoError(
                f"Failed to create image file {path}: {e}",
                context={"path": str(path), "size_bytes": size_bytes},
            ) from e

        fat_type = select_fat_type(size_bytes)
        try:
            formatter = PyFat()
            formatter.mkfs(str(path), fat_type)
            formatter.close()
            volume = PyFatFS(str(path))
        except (PyFATException, fs.errors.FSError, OSError) as e:
            path.unlink(missing_ok=True)
            raise ImageFormatError(
                f"Failed to format image file {path} as FAT{fat_type}: {e}",
                context={"path": str(path), "size_bytes": size_bytes, "fat_type": fat_type},
            ) from e

        logger.debug(
            "Boot image formatted",
            extra={"path": str(path), "size_bytes": size_bytes, "fat_type": fat_type},
        )
        return cls(path, size_bytes, volume)

    def __enter__(self) -> BootImage:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._volume is None

    def close(self) -> None:
        """Flush and release the volume handle. Idempotent."""
        volume, self._volume = self._volume, None
        if volume is None:
            return
        try:
            volume.close()
        except (PyFATException, fs.errors.FSError, OSError) as e:
            raise ImageIoError(
                f"Failed to flush image file {self.path}: {e}",
                context={"path": str(self.path)},
            ) from e
        logger.debug("Boot image closed", extra={"path": str(self.path)})

    def _require_volume(self) -> PyFatFS:
        if self._volume is None:
            raise ImageError(f"Boot image {self.path} is closed", context={"path": str(self.path)})
        return self._volume

    def _ensure_dir(self, cursor: str, name: str) -> str:
        """Get-or-create ``name`` below ``cursor``; returns the child directory.

        FAT names are case-insensitive, so an existing entry spelled
        differently (``efi`` vs ``EFI``) is reused under its stored name.
        """
        volume = self._require_volume()
        stored = {entry.upper(): entry for entry in volume.listdir(cursor)}
        child = fs.path.join(cursor, stored.get(name.upper(), name))
        volume.makedir(child, recreate=True)
        return child

    def write_file(self, image_path: str | PurePath, data: bytes) -> None:
        """Write ``data`` to ``image_path``, creating missing parent directories.

        An existing file at ``image_path`` is removed and written again.

        Raises:
            ImageIoError: Directory creation or the write failed
        """
        volume = self._require_volume()
        parents, leaf = _volume_path(image_path)
        try:
            directory = functools.reduce(self._ensure_dir, parents, "/")
            target_path = fs.path.join(directory, leaf)
            # Truncating in place corrupts multi-cluster chains; start from a fresh entry
            if volume.isfile(target_path):
                volume.remove(target_path)
            with volume.openbin(target_path, "w") as target:
                target.write(data)
        except (PyFATException, fs.errors.FSError, OSError) as e:
            raise ImageIoError(
                f"Failed to write {image_path} into image: {e}",
                context={"path": str(self.path), "image_path": str(image_path)},
            ) from e
        logger.debug(
            "Wrote file into boot image",
            extra={"image_path": str(image_path), "bytes": len(data)},
        )

    async def copy_host_file(self, host_path: str | Path, image_path: str | PurePath) -> None:
        """Read a host file fully and write it to ``image_path``.

        Raises:
            HostFileError: Host file unreadable
            ImageIoError: Write into the volume failed
        """
        try:
            async with aiofiles.open(host_path, "rb") as source:
                data = await source.read()
        except OSError as e:
            raise HostFileError(
                f"Failed to read host file {host_path}: {e}",
                context={"host_path": str(host_path), "image_path": str(image_path)},
            ) from e
        self.write_file(image_path, data)

    def read_file(self, image_path: str | PurePath) -> bytes:
        """Return the contents of ``image_path`` inside the volume."""
        volume = self._require_volume()
        parents, leaf = _volume_path(image_path)
        try:
            return volume.readbytes(fs.path.join("/", *parents, leaf))
        except (PyFATException, fs.errors.FSError, OSError) as e:
            raise ImageIoError(
                f"Failed to read {image_path} from image: {e}",
                context={"path": str(self.path), "image_path": str(image_path)},
            ) from e

    def exists(self, image_path: str | PurePath) -> bool:
        parents, leaf = _volume_path(image_path)
        return self._require_volume().exists(fs.path.join("/", *parents, leaf))


async def build_boot_image(
    path: str | Path,
    size_mib: int,
    efi_executable: str | Path,
    path_specs: Iterable[PathSpec] = (),
    *,
    direct_boot: bool = False,
) -> Path:
    """Build a complete boot image and release it for QEMU.

    The executable and startup.nsh are always written first, then every
    user file in order (later placements overwrite earlier ones).

    Args:
        path: Backing file to create
        size_mib: Image size in MiB
        efi_executable: UEFI executable on the host
        path_specs: Additional files to place
        direct_boot: Place the executable at EFI/Boot/BootX64.efi instead of run.efi

    Returns:
        Path of the finished, closed image file

    Raises:
        ImageError: Any failure while building; the image must not be booted
    """
    executable_path = constants.DIRECT_BOOT_EFI_PATH if direct_boot else constants.RUN_EFI_PATH

    with BootImage.create(path, mib_to_bytes(size_mib)) as image:
        await image.copy_host_file(efi_executable, executable_path)
        image.write_file(constants.STARTUP_SCRIPT_PATH, startup_script(executable_path))
        for spec in path_specs:
            await image.copy_host_file(spec.host_path, spec.image_path)

    logger.info(
        "Boot image ready",
        extra={"path": str(image.path), "executable": str(executable_path), "direct_boot": direct_boot},
    )
    return image.path
