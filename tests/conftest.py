# Shared pytest fixtures
from __future__ import annotations

import tempfile
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import pytest

from roster_ingest.logging.init import reset_logging
from workbooks import build_workbook


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def roster_file(temp_workdir: Path) -> Callable[..., Path]:
    def _write(
        rows: Sequence[Sequence[Any]],
        images: Sequence[tuple[str, bytes]] = (),
        name: str = "roster.xlsx",
    ) -> Path:
        path = temp_workdir / "data" / name
        path.write_bytes(build_workbook(rows, images))
        return path

    return _write


@pytest.fixture()
def sample_config_yaml() -> str:
    return """identifier:
  pattern: '^PS/LAB/[0-9]{2}/[0-9]{4}$'
  format: PS/LAB/YY/####
  example: PS/LAB/22/0001
images:
  column_tolerance: 2
  path_prefix: avatars
credentials:
  policy: random
storage:
  backend: none
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: portal
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "ingest.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg
