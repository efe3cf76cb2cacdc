"""JSON registry of the lighthouses managed by lh2ctl."""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterable
from importlib import resources
from pathlib import Path
from typing import Any

from jsonschema import ValidationError, validators

from lh2ctl.core.errors import (
    InvalidAddressError,
    RegistryCorruptError,
    RegistryEmptyError,
    RegistryInvalidError,
    RegistryMissingError,
    RegistryWriteError,
)
from lh2ctl.core.model import LighthouseAddress, parse_addresses

REGISTRY_KEY = "Lighthouses"
LOGGER = logging.getLogger(__name__)


def registry_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "lh2ctl" / "lh2ctl.json"


def _load_schema_validator() -> Any:
    schema_text = resources.files("lh2ctl.schemas").joinpath("registry.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _read_document(path: Path) -> Any:
    if not path.exists():
        raise RegistryMissingError(f"lighthouse config file does not exist: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise RegistryCorruptError(f"Could not read lighthouse config file {path}: {exc}") from exc

    if not content.strip():
        raise RegistryInvalidError(f"lighthouse config file is empty: {path}")

    try:
        return json.loads(content)
    except json.JSONDecodeError as exc:
        raise RegistryCorruptError(f"lighthouse config file is not valid JSON: {path}: {exc}") from exc


def load_registry(path: Path | None = None) -> list[LighthouseAddress]:
    """Return the registered addresses, deduplicated in file order."""
    path = path or registry_path()
    doc = _read_document(path)

    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        where = ".".join(str(p) for p in exc.path)
        where = f" ({where})" if where else ""
        raise RegistryInvalidError(
            f"lighthouse config file {path} is missing the `{REGISTRY_KEY}` property "
            f"or it is not a valid array of addresses{where}: {exc.message}"
        ) from exc

    try:
        addresses = parse_addresses(doc[REGISTRY_KEY])
    except InvalidAddressError as exc:
        raise RegistryInvalidError(f"lighthouse config file {path} is invalid: {exc}") from exc

    if not addresses:
        raise RegistryEmptyError(
            "There are no registered lighthouses! Run `lh2ctl register <addresses>` to add them"
        )
    return addresses


def register(
    addresses: Iterable[LighthouseAddress],
    path: Path | None = None,
) -> list[LighthouseAddress]:
    """Merge ``addresses`` into the registry and return the stored list."""
    path = path or registry_path()

    existing: list[LighthouseAddress]
    try:
        existing = load_registry(path)
    except (RegistryMissingError, RegistryEmptyError):
        existing = []
    except (RegistryCorruptError, RegistryInvalidError) as exc:
        LOGGER.warning("Replacing unusable lighthouse configuration: %s", exc)
        existing = []

    merged = list(dict.fromkeys([*existing, *addresses]))
    document = {REGISTRY_KEY: [str(address) for address in merged]}

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise RegistryWriteError(
            f"Failed to create lighthouse configuration directory {path.parent}: {exc}",
            stage="directory",
        ) from exc

    try:
        path.write_text(json.dumps(document, indent=2) + "\n", encoding="utf-8")
    except OSError as exc:
        raise RegistryWriteError(
            f"Failed to write lighthouse configuration {path}: {exc}",
            stage="file",
        ) from exc

    LOGGER.debug("Registered lighthouses in %s: %s", path, ", ".join(document[REGISTRY_KEY]))
    return merged
