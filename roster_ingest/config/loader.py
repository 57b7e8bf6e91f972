from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import best_match

from ..excel.headers import HeaderLabels
from ..services.association import DEFAULT_COLUMN_TOLERANCE
from ..services.credentials import CredentialPolicy
from ..services.normalizer import DEFAULT_IDENTIFIER_RULE, IdentifierRule

"""Config loader.

Responsibilities:
- Load YAML (default ``config/ingest.yml``)
- Validate against the bundled JSON schema (unknown keys rejected)
- Apply defaults for everything left out
- Compile the identifier pattern once, so a bad pattern is a config error
  rather than a per-row crash

Secrets (database password, storage service key) come from the environment;
see ``roster_ingest.db.record_store.resolve_dsn`` and
``SupabaseBlobStore.from_env``.
"""

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/ingest.yml")
DEFAULT_MAX_UPLOAD_BYTES = 50 * 1024 * 1024


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DatabaseConfig:
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None
    table: str = "students"


@dataclass(frozen=True)
class StorageConfig:
    backend: str = "supabase"  # supabase | local | none
    bucket: str = "student-avatars"
    local_directory: str = "./uploads"
    public_base_url: str | None = None
    timeout_seconds: float = 30.0


@dataclass(frozen=True)
class IngestConfig:
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    identifier_rule: IdentifierRule = DEFAULT_IDENTIFIER_RULE
    header_labels: HeaderLabels = field(default_factory=HeaderLabels)
    column_tolerance: int = DEFAULT_COLUMN_TOLERANCE
    image_path_prefix: str = "avatars"
    credential_policy: CredentialPolicy = CredentialPolicy.RANDOM
    storage: StorageConfig = field(default_factory=StorageConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)


@lru_cache(maxsize=1)
def _schema_validator() -> jsonschema.Draft7Validator:
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    return jsonschema.Draft7Validator(schema)


def _validate_config_schema(data: dict[str, Any]) -> None:
    error = best_match(_schema_validator().iter_errors(data))
    if error is not None:
        where = "/".join(str(p) for p in error.absolute_path) or "<root>"
        raise ConfigError(f"config validation failed at {where}: {error.message}")


def _labels(raw: dict[str, Any], key: str, default: tuple[str, ...]) -> tuple[str, ...]:
    values = raw.get(key)
    return tuple(values) if values else default


def config_from_dict(data: dict[str, Any]) -> IngestConfig:
    _validate_config_schema(data)
    defaults = IngestConfig()

    ident_raw = data.get("identifier")
    identifier_rule = defaults.identifier_rule
    if ident_raw:
        try:
            identifier_rule = IdentifierRule.compile(
                ident_raw["pattern"],
                ident_raw.get("format", ident_raw["pattern"]),
                ident_raw.get("example", ""),
            )
        except re.error as e:
            raise ConfigError(f"invalid identifier pattern {ident_raw['pattern']!r}: {e}") from e

    hdr = data.get("headers", {})
    base = defaults.header_labels
    header_labels = HeaderLabels(
        name=_labels(hdr, "name", base.name),
        identifier=_labels(hdr, "identifier", base.identifier),
        phone=_labels(hdr, "phone", base.phone),
        email=_labels(hdr, "email", base.email),
        image_synonyms=_labels(hdr, "image_synonyms", base.image_synonyms),
    )

    images = data.get("images", {})
    storage_raw = data.get("storage", {})
    db_raw = data.get("database", {})
    return IngestConfig(
        max_upload_bytes=data.get("max_upload_bytes", defaults.max_upload_bytes),
        identifier_rule=identifier_rule,
        header_labels=header_labels,
        column_tolerance=images.get("column_tolerance", defaults.column_tolerance),
        image_path_prefix=images.get("path_prefix", defaults.image_path_prefix),
        credential_policy=CredentialPolicy(data.get("credentials", {}).get("policy", "random")),
        storage=StorageConfig(**storage_raw),
        database=DatabaseConfig(**db_raw),
    )


def load_config(path: Path) -> IngestConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping, got {type(data).__name__}")
    return config_from_dict(data)
