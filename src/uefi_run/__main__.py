"""Module entrypoint for `python -m uefi_run`."""

from uefi_run.cli import main

if __name__ == "__main__":
    main()
