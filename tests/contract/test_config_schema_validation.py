from __future__ import annotations

import json
from pathlib import Path

import jsonschema
import yaml

from roster_ingest.config.loader import SCHEMA_PATH

PROJECT_ROOT = Path(__file__).resolve().parents[2]


def test_schema_is_valid_draft7():
    schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
    jsonschema.Draft7Validator.check_schema(schema)


def test_shipped_sample_config_validates():
    schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
    sample = yaml.safe_load((PROJECT_ROOT / "config" / "ingest.yml").read_text(encoding="utf-8"))
    jsonschema.validate(sample, schema)
