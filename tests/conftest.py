from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path for the flat top-level modules
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from tests.fixtures.fake_engines import fake_engine_set  # noqa: E402


@pytest.fixture
def engines():
    return fake_engine_set()


@pytest.fixture
def reference(tmp_path: Path) -> Path:
    fa = tmp_path / "a.fa"
    fa.write_text(">chr1\nACGTACGTACGT\n", encoding="utf-8")
    return fa
