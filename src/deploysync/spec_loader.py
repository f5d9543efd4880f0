"""Declared configuration loading with validation.

SECURITY: All file operations enforce size limits to prevent DoS attacks
via large files. Input validation is performed at the boundary.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import yaml
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .config import MAX_SPEC_FILE_SIZE_BYTES, Config
from .errors import DeploySyncError
from .models import format_validation_errors, get_spec_class

logger = logging.getLogger(__name__)

SPEC_FILE_SUFFIXES = (".yaml", ".yml")


class SpecLoadError(DeploySyncError):
    """Raised when a declared configuration cannot be loaded or validated."""

    pass


@dataclass(frozen=True)
class DeclaredResource:
    """One validated declared resource and where it came from."""

    kind: str
    spec: BaseModel
    path: Path


def load_spec(spec_path: Path, default_kind: str | None = None) -> DeclaredResource:
    """Load and validate one declared resource from YAML.

    Two layouts are accepted:
        # Wrapped
        apiVersion: deploysync/v1
        kind: ContainerDeployment
        spec: {...}

        # Flat, with kind alongside the fields
        kind: ContainerDeployment
        name: inference
        ...

    Args:
        spec_path: Path to the YAML file.
        default_kind: Kind to use when the document does not name one.

    Returns:
        DeclaredResource with the validated model.

    Raises:
        SpecLoadError: If the file cannot be loaded or fails validation.
    """
    if not spec_path.exists():
        raise SpecLoadError(f"Spec file not found: {spec_path}")

    # SECURITY: Check file size before reading to prevent DoS
    try:
        file_size = spec_path.stat().st_size
    except OSError as e:
        raise SpecLoadError(f"Failed to stat spec file {spec_path}: {e}") from e

    if file_size > MAX_SPEC_FILE_SIZE_BYTES:
        raise SpecLoadError(
            f"Spec file exceeds maximum size of {MAX_SPEC_FILE_SIZE_BYTES} bytes: {spec_path}"
        )

    try:
        content = spec_path.read_text(encoding="utf-8")
    except OSError as e:
        raise SpecLoadError(f"Failed to read spec file {spec_path}: {e}") from e

    try:
        raw_data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SpecLoadError(f"Invalid YAML in {spec_path}: {e}") from e

    if not isinstance(raw_data, dict):
        raise SpecLoadError(f"Spec file must contain a YAML mapping: {spec_path}")

    kind = raw_data.get("kind") or default_kind
    if not kind:
        raise SpecLoadError(f"Spec file does not declare a kind: {spec_path}")

    if "apiVersion" in raw_data and "spec" in raw_data:
        spec_data = raw_data.get("spec") or {}
        if not isinstance(spec_data, dict):
            raise SpecLoadError(f"Spec section must be a mapping: {spec_path}")
    else:
        spec_data = {k: v for k, v in raw_data.items() if k != "kind"}

    try:
        spec_class = get_spec_class(kind)
    except ValueError as e:
        raise SpecLoadError(str(e)) from e

    try:
        spec = spec_class.model_validate(spec_data)
    except PydanticValidationError as e:
        error_list = "\n".join(f"  - {line}" for line in format_validation_errors(e))
        raise SpecLoadError(f"Validation failed for {spec_path}:\n{error_list}") from e

    logger.info("Loaded %s spec from %s", kind, spec_path)
    return DeclaredResource(kind=kind, spec=spec, path=spec_path)


def load_specs(specs_dir: Path) -> list[DeclaredResource]:
    """Load every YAML file in a directory, in file name order.

    Raises:
        SpecLoadError: On the first file that fails to load.
    """
    if not specs_dir.is_dir():
        raise SpecLoadError(f"Specs directory not found: {specs_dir}")

    paths = sorted(p for p in specs_dir.iterdir() if p.suffix in SPEC_FILE_SUFFIXES)
    resources = [load_spec(path) for path in paths]
    logger.info("Loaded %d declared resources from %s", len(resources), specs_dir)
    return resources


def load_configured_specs(config: Config) -> list[DeclaredResource]:
    """Load the declared resources from ``config.specs_dir``.

    Raises:
        SpecLoadError: If no specs directory is configured, or a file fails.
    """
    if config.specs_dir is None:
        raise SpecLoadError("No specs directory configured; set DEPLOYSYNC_SPECS_DIR")
    return load_specs(config.specs_dir)
