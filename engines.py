#!/usr/bin/env python3
"""
engines.py

The call boundary to the compute engines (graph builder, index builder,
poison-table builder and the read mappers).

An engine is anything with a name, a version string and an invoke(argv)
method returning an integer exit code. The orchestrator only ever sees that
integer. SubprocessEngine is the production implementation: it launches the
configured executable with argv[1:] and waits for it. Tests substitute
in-memory fakes.

EngineSet.check_available() resolves every executable a build will need
before the first stage starts, so a missing index or poison builder is
reported up front rather than after the graph stage.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

import paths
from utils import capture_first_line, run, which_or_die


class Engine(Protocol):
    name: str

    @property
    def version(self) -> str: ...

    def invoke(self, argv: Sequence[str]) -> int: ...


class SubprocessEngine:
    """
    Run an engine as an external process.

    argv[0] is the logical program name and is replaced by the executable;
    the remaining tokens are passed through unchanged.
    """

    def __init__(self, name: str, executable: Optional[str] = None, version: Optional[str] = None):
        self.name = name
        self.executable = executable or paths.engine_executable(name)
        self._version = version

    @property
    def version(self) -> str:
        if self._version is None:
            self._version = capture_first_line([self.executable, "--version"]) or "unknown"
        return self._version

    def resolve(self) -> str:
        """Full path of the executable; ConfigurationError when it cannot be found."""
        return which_or_die(self.executable)

    def invoke(self, argv: Sequence[str]) -> int:
        return run([self.resolve(), *argv[1:]])

    def __repr__(self) -> str:
        return f"SubprocessEngine({self.name!r}, executable={self.executable!r})"


@dataclass(frozen=True)
class EngineSet:
    """The three engines a build drives, injected into the orchestrator."""
    graph: Engine
    index: Engine
    poison: Engine

    @classmethod
    def from_environment(cls) -> "EngineSet":
        return cls(
            graph=SubprocessEngine(paths.GRAPH_PROGRAM),
            index=SubprocessEngine(paths.INDEX_PROGRAM),
            poison=SubprocessEngine(paths.POISON_PROGRAM),
        )

    def check_available(self, with_poison: bool) -> None:
        """
        Resolve the executable of every engine the build will call.

        Engines without a resolve() method (in-process engines) are always
        available. Raises ConfigurationError for the first missing one.
        """
        engines = [self.graph, self.index]
        if with_poison:
            engines.append(self.poison)
        for engine in engines:
            resolve = getattr(engine, "resolve", None)
            if resolve is not None:
                resolve()
