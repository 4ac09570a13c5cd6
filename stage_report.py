#!/usr/bin/env python3
"""
stage_report.py

Tabular ledger of the engine invocations made by one pipeline run.

One row per executed stage: stage name, program, exit code, wall time and the
argv that was passed. The table is written as TSV next to the index, both
after a successful build and after a failed stage, so an operator can see
exactly what ran.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Sequence, Tuple

import pandas as pd

from utils import ensure_dir

COLUMNS = ["stage", "program", "exit_code", "seconds", "argv"]


@dataclass(frozen=True)
class StageInvocation:
    """A single engine call and its outcome; exit code 0 means success."""
    stage: str
    argv: Tuple[str, ...]
    exit_code: int
    seconds: float = 0.0

    @property
    def program(self) -> str:
        return self.argv[0] if self.argv else ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


def stage_table(invocations: Sequence[StageInvocation]) -> pd.DataFrame:
    rows = [
        {
            "stage": inv.stage,
            "program": inv.program,
            "exit_code": int(inv.exit_code),
            "seconds": round(float(inv.seconds), 3),
            "argv": " ".join(inv.argv),
        }
        for inv in invocations
    ]
    return pd.DataFrame(rows, columns=COLUMNS)


def write_stage_report(invocations: Sequence[StageInvocation], out_tsv: Path) -> Path:
    ensure_dir(out_tsv.parent)
    stage_table(invocations).to_csv(out_tsv, sep="\t", index=False)
    return out_tsv


def read_stage_report(tsv: Path) -> pd.DataFrame:
    return pd.read_csv(tsv, sep="\t", dtype={"argv": str})

