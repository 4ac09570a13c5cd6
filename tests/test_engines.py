from __future__ import annotations

import sys

import pytest

import paths
from engines import EngineSet, SubprocessEngine
from errors import ConfigurationError
from tests.fixtures.fake_engines import FakeEngine


def test_subprocess_engine_returns_exit_code():
    engine = SubprocessEngine("probe", executable=sys.executable)
    assert engine.invoke(["probe", "-c", "import sys; sys.exit(3)"]) == 3
    assert engine.invoke(["probe", "-c", "pass"]) == 0


def test_subprocess_engine_version_query():
    engine = SubprocessEngine("probe", executable=sys.executable)
    assert engine.version.startswith("Python")


def test_subprocess_engine_version_fallback():
    engine = SubprocessEngine("probe", executable="/nonexistent/engine-binary")
    assert engine.version == "unknown"


def test_explicit_version_is_not_queried():
    assert SubprocessEngine("probe", executable="/nonexistent", version="1.2.3").version == "1.2.3"


def test_missing_executable_is_a_configuration_error():
    engine = SubprocessEngine("probe", executable="definitely-not-on-path-piscem")
    with pytest.raises(ConfigurationError, match="not found in PATH"):
        engine.invoke(["probe"])


def test_engine_set_from_environment(monkeypatch):
    monkeypatch.setenv("PISCEM_REF_INDEX_BUILDER", "/opt/bin/build")
    engines = EngineSet.from_environment()
    assert engines.graph.name == paths.GRAPH_PROGRAM
    assert engines.index.executable == "/opt/bin/build"
    assert engines.poison.name == paths.POISON_PROGRAM


def test_check_available_skips_poison_without_decoys():
    missing = SubprocessEngine("poison_table_builder", executable="no-such-poison-builder-piscem")
    engines = EngineSet(graph=FakeEngine("cdbg_builder"), index=FakeEngine("ref_index_builder"), poison=missing)
    engines.check_available(with_poison=False)
    with pytest.raises(ConfigurationError, match="no-such-poison-builder-piscem"):
        engines.check_available(with_poison=True)


def test_check_available_resolves_subprocess_engines():
    engines = EngineSet(
        graph=SubprocessEngine("cdbg_builder", executable=sys.executable),
        index=SubprocessEngine("ref_index_builder", executable=sys.executable),
        poison=SubprocessEngine("poison_table_builder", executable=sys.executable),
    )
    engines.check_available(with_poison=True)
