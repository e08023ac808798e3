"""Data models for uefi-run."""

from pathlib import Path, PurePosixPath

from pydantic import BaseModel, ConfigDict, Field


class PathSpec(BaseModel):
    """Placement of one host file inside the boot image.

    ``image_path`` is relative to the image root and always has a leaf
    component.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    host_path: Path = Field(description="Source file on the host")
    image_path: PurePosixPath = Field(description="Destination inside the image, relative to its root")


class QemuDrive(BaseModel):
    """A ``-drive`` entry. Drives are numbered by their position in QemuConfig.drives."""

    model_config = ConfigDict(frozen=True)

    file: Path
    media: str = "disk"
    format: str = "raw"


class QemuConfig(BaseModel):
    """Everything needed to assemble one QEMU invocation."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    qemu_path: str = Field(description="QEMU binary, resolved through PATH when not absolute")
    bios_path: Path = Field(description="UEFI firmware image passed via -bios")
    drives: list[QemuDrive] = Field(default_factory=list)
    additional_args: list[str] = Field(
        default_factory=lambda: ["-net", "none"],
        description="Fixed arguments placed after the drives",
    )
    user_args: list[str] = Field(
        default_factory=list,
        description="Trailing arguments forwarded verbatim from the command line",
    )
