"""
docflow_config -- single public entrypoint for workflow configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables directly.  Returns a ``CompiledWorkflowPack``
    -- the sole runtime artifact.  YAML loading is internal tooling.

Architecture position:
    Configuration -- YAML-driven workflow definitions, load-time validation.
    Sits above ``docflow_kernel`` and below ``docflow_services``.  The
    kernel never imports from this package.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Load-time validation: cross-fragment validation and the kernel's
      TransitionTable checks must pass before a pack is produced.
    - Fingerprint pinning: when an APPROVED_FINGERPRINT file exists, the
      compiled canonical fingerprint must match it.
    - Deterministic compilation: the same YAML fragments always produce the
      same checksum and fingerprint.

Failure modes:
    - ``FileNotFoundError`` -- no matching configuration set.
    - ``ValueError`` -- cross-fragment validation failures.
    - ``ConfigurationError`` subclasses -- workflow structure defects,
      assembly errors, fingerprint mismatch.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``DOCFLOW_CONFIG_TRACE`` log entry with config_id, version, checksum,
    fingerprint and document types, tying every audit entry written by the
    engine back to the workflow definitions that governed it.
"""

from __future__ import annotations

import os
from dataclasses import replace
from pathlib import Path

from docflow_config.assembler import AssemblyError, assemble_from_directory
from docflow_config.compiler import CompiledWorkflowPack, compile_workflow_pack
from docflow_config.integrity import ConfigIntegrityError, verify_fingerprint_pin
from docflow_config.schema import ConfigStatus, WorkflowConfigurationSet
from docflow_config.validator import validate_configuration
from docflow_kernel.logging_config import get_logger

__all__ = [
    "AssemblyError",
    "CompiledWorkflowPack",
    "ConfigIntegrityError",
    "DATABASE_URL_ENV",
    "get_active_config",
    "load_pack_from_directory",
]

_logger = get_logger("config")

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

DATABASE_URL_ENV = "DATABASE_URL"


def get_active_config(
    config_id: str | None = None,
    config_dir: Path | None = None,
    database_url: str | None = None,
) -> CompiledWorkflowPack:
    """The ONLY public configuration entrypoint.

    Selection:
        With ``config_id``, the set with that id (highest version wins).
        Without it, the highest-version PUBLISHED set, falling back to the
        only set present (dev/test convenience).

    Database URL precedence:
        ``database_url`` argument > ``DATABASE_URL`` environment variable >
        ``engine.yaml``.

    Args:
        config_id: Configuration set identifier to load.
        config_dir: Override path to the configuration sets directory.
            Defaults to docflow_config/sets/.
        database_url: Explicit database URL override.

    Raises:
        FileNotFoundError: If no matching configuration set is found.
        ValueError: If cross-fragment validation fails.
        ConfigurationError: If compilation or fingerprint verification fails.
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    fragment_dir = _find_config_dir(sets_dir, config_id)

    pack = load_pack_from_directory(fragment_dir)

    url = database_url or os.environ.get(DATABASE_URL_ENV)
    if url:
        pack = replace(
            pack,
            engine=replace(pack.engine, database=replace(pack.engine.database, url=url)),
        )

    return pack


def load_pack_from_directory(fragment_dir: Path) -> CompiledWorkflowPack:
    """Assemble, validate, compile and pin-check one configuration set."""
    config_set = assemble_from_directory(fragment_dir)

    validation = validate_configuration(config_set)
    for warning in validation.warnings:
        _logger.warning(
            "config_validation_warning",
            extra={"config_id": config_set.config_id, "warning": warning},
        )
    if not validation.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )

    pack = compile_workflow_pack(config_set)

    # INVARIANT: compiled checksum must match assembled source checksum.
    assert pack.checksum == config_set.checksum, (
        f"Checksum drift: compiled={pack.checksum!r} != source={config_set.checksum!r}"
    )

    verify_fingerprint_pin(pack.config_id, pack.canonical_fingerprint, fragment_dir)

    _logger.info(
        "DOCFLOW_CONFIG_TRACE",
        extra={
            "trace_type": "DOCFLOW_CONFIG_TRACE",
            "config_set_id": pack.config_id,
            "config_set_version": pack.config_version,
            "status": pack.status.value,
            "checksum": pack.checksum,
            "fingerprint": pack.canonical_fingerprint,
            "document_types": list(pack.document_types),
            "role_count": len(pack.roles),
        },
    )
    return pack


def _find_config_dir(sets_dir: Path, config_id: str | None) -> Path:
    """Pick the fragment directory to load.

    Raises:
        FileNotFoundError: If ``sets_dir`` does not exist or nothing matches.
    """
    if not sets_dir.is_dir():
        raise FileNotFoundError(f"Configuration sets directory not found: {sets_dir}")

    available: list[tuple[WorkflowConfigurationSet, Path]] = []
    for subdir in sorted(sets_dir.iterdir()):
        if subdir.is_dir() and (subdir / "root.yaml").exists():
            available.append((assemble_from_directory(subdir), subdir))

    if config_id is not None:
        matching = [(c, p) for c, p in available if c.config_id == config_id]
        if not matching:
            raise FileNotFoundError(
                f"No configuration set with config_id='{config_id}' in {sets_dir}"
            )
        return max(matching, key=lambda pair: pair[0].version)[1]

    published = [(c, p) for c, p in available if c.status == ConfigStatus.PUBLISHED]
    if published:
        return max(published, key=lambda pair: pair[0].version)[1]

    if len(available) == 1:
        return available[0][1]

    raise FileNotFoundError(
        f"No published configuration set in {sets_dir} "
        f"({len(available)} candidate(s)); pass config_id explicitly"
    )
