"""Runtime defaults from environment variables."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from uefi_run import constants


class Settings(BaseSettings):
    """Defaults for the firmware image, QEMU binary and image size.

    All settings can be overridden via environment variables with UEFI_RUN_ prefix.
    Example: UEFI_RUN_BIOS_PATH=/usr/share/OVMF/OVMF_CODE.fd

    Command-line options take precedence over these values.
    """

    model_config = SettingsConfigDict(
        env_prefix="UEFI_RUN_",
        extra="ignore",
    )

    bios_path: Path = Path(constants.DEFAULT_BIOS_PATH)
    qemu_path: str = constants.DEFAULT_QEMU_PATH
    size_mib: int = Field(default=constants.DEFAULT_IMAGE_SIZE_MIB, ge=constants.MIN_IMAGE_SIZE_MIB)
