"""
Approval pin for workflow configuration sets.

An approved set carries ``APPROVED_FINGERPRINT`` next to its ``root.yaml``.
Loading compares the compiled fingerprint against it, so an unreviewed
edit to a published workflow (a role added to a rule, a guard removed)
stops the engine from starting.  Sets without the file are not checked.
"""

from __future__ import annotations

from pathlib import Path

from docflow_kernel.exceptions import ConfigurationError
from docflow_kernel.logging_config import get_logger

logger = get_logger("config.integrity")

PINFILE_NAME = "APPROVED_FINGERPRINT"


class ConfigIntegrityError(ConfigurationError):
    """The compiled workflows differ from the approved ones."""

    code: str = "CONFIG_INTEGRITY_MISMATCH"

    def __init__(self, config_id: str, pinned: str, compiled: str, pin_path: Path):
        self.config_id = config_id
        self.pinned = pinned
        self.compiled = compiled
        self.pin_path = pin_path
        super().__init__(
            f"Workflow set '{config_id}' changed since approval: "
            f"{pin_path} pins {pinned[:12]}, compiled {compiled[:12]}"
        )


def read_pinned_fingerprint(set_dir: Path) -> str | None:
    pin_path = set_dir / PINFILE_NAME
    return pin_path.read_text().strip() if pin_path.is_file() else None


def write_pinned_fingerprint(set_dir: Path, fingerprint: str) -> Path:
    """Approve the set's current workflows."""
    pin_path = set_dir / PINFILE_NAME
    pin_path.write_text(f"{fingerprint}\n")
    logger.info("config_fingerprint_pinned", extra={"pin_path": str(pin_path)})
    return pin_path


def verify_fingerprint_pin(config_id: str, fingerprint: str, set_dir: Path) -> None:
    pinned = read_pinned_fingerprint(set_dir)
    if pinned is None:
        logger.debug("config_fingerprint_unpinned", extra={"config_id": config_id})
        return
    if pinned != fingerprint:
        raise ConfigIntegrityError(config_id, pinned, fingerprint, set_dir / PINFILE_NAME)
