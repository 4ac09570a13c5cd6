from __future__ import annotations

from pathlib import Path

import pytest

from errors import ConfigurationError, InputError, MarshalError, StageFailure
from map_reads import MapBulkOpts, MapScAtacOpts, MapSCOpts, check_index, index_files, map_reads
from tests.fixtures.fake_engines import FakeEngine


@pytest.fixture
def index(tmp_path: Path) -> str:
    prefix = tmp_path / "idx" / "out"
    prefix.parent.mkdir(parents=True)
    for suffix in (".sshash", ".ctab", ".refinfo", ".ectab"):
        Path(str(prefix) + suffix).write_text("x", encoding="utf-8")
    return str(prefix)


def test_index_files(index):
    assert [p.name for p in index_files(index, require_ectab=True)] == [
        "out.sshash", "out.ctab", "out.refinfo", "out.ectab",
    ]
    assert [p.name for p in index_files(index, require_ectab=False)] == ["out.sshash", "out.ctab", "out.refinfo"]


def test_index_prefix_must_not_be_a_file(index):
    with pytest.raises(InputError, match="file stem"):
        check_index(index + ".sshash", require_ectab=False)


def test_missing_ectab_only_matters_when_checking_ambiguous_hits(index):
    Path(index + ".ectab").unlink()
    check_index(index, require_ectab=False)
    with pytest.raises(InputError, match="out.ectab"):
        check_index(index, require_ectab=True)


def test_sc_argv(index, tmp_path: Path):
    opts = MapSCOpts(
        index=index,
        geometry="chromium_v3",
        read1=("r1a.fq", "r1b.fq"),
        read2=("r2a.fq", "r2b.fq"),
        output=tmp_path / "map",
        threads=4,
    )
    assert opts.as_argv() == [
        "sc_ref_mapper",
        "-i", index,
        "-g", "chromium_v3",
        "-1", "r1a.fq,r1b.fq",
        "-2", "r2a.fq,r2b.fq",
        "-t", "4",
        "-o", str(tmp_path / "map"),
        "--max-ec-card", "4096",
        "--skipping-strategy", "permissive",
        "--max-hit-occ", "256",
        "--max-hit-occ-recover", "1024",
        "--max-read-occ", "2500",
    ]


def test_sc_ignore_ambig_hits_drops_cap(index, tmp_path: Path):
    Path(index + ".ectab").unlink()
    opts = MapSCOpts(index=index, geometry="g", read1=("a",), read2=("b",), output=tmp_path,
                     ignore_ambig_hits=True, no_poison=True, struct_constraints=True)
    argv = opts.as_argv(quiet=True)
    assert "--ignore-ambig-hits" in argv
    assert "--max-ec-card" not in argv
    assert "--no-poison" in argv and "--struct-constraints" in argv
    assert argv[-1] == "--quiet"


def test_ec_card_conflicts_with_ignore(index, tmp_path: Path):
    opts = MapSCOpts(index=index, geometry="g", read1=("a",), read2=("b",), output=tmp_path,
                     ignore_ambig_hits=True, max_ec_card=100)
    with pytest.raises(ConfigurationError, match="cannot be used"):
        opts.as_argv()


def test_bulk_unpaired(index, tmp_path: Path):
    argv = MapBulkOpts(index=index, output=tmp_path, reads=("r.fq",), threads=2, max_ec_card=128).as_argv()
    assert argv[:9] == ["bulk_ref_mapper", "-i", index, "-t", "2", "-o", str(tmp_path), "-r", "r.fq"]
    assert argv[argv.index("--max-ec-card") + 1] == "128"


def test_bulk_paired(index, tmp_path: Path):
    argv = MapBulkOpts(index=index, output=tmp_path, read1=("a.fq",), read2=("b.fq",)).as_argv()
    assert argv[7:11] == ["-1", "a.fq", "-2", "b.fq"]
    assert "-r" not in argv


@pytest.mark.parametrize(
    "kw",
    [{}, {"read1": ("a",)}, {"read2": ("b",)}, {"reads": ("r",), "read1": ("a",), "read2": ("b",)}],
)
def test_bulk_read_selection_errors(index, tmp_path: Path, kw):
    with pytest.raises(ConfigurationError):
        MapBulkOpts(index=index, output=tmp_path, **kw).as_argv()


def test_bad_skipping_strategy(index, tmp_path: Path):
    with pytest.raises(ConfigurationError, match="skipping strategy"):
        MapBulkOpts(index=index, output=tmp_path, reads=("r",), skipping_strategy="lenient").as_argv()


def test_scatac_argv(index, tmp_path: Path):
    Path(index + ".ectab").unlink()
    opts = MapScAtacOpts(
        index=index,
        output=tmp_path,
        barcode=("bc.fq",),
        read1=("a.fq",),
        read2=("b.fq",),
        threads=8,
        bed_format=True,
        no_tn5_shift=True,
        check_kmer_orphan=True,
    )
    assert opts.as_argv() == [
        "scatac_ref_mapper",
        "-i", index,
        "-t", "8",
        "-o", str(tmp_path),
        "-1", "a.fq",
        "-2", "b.fq",
        "-b", "bc.fq",
        "--skipping-strategy", "permissive",
        "--bed-format",
        "--kmers-orphans",
        "--thr", "0.7",
        "--tn5-shift", "false",
        "--bin-size", "1000",
        "--bin-overlap", "300",
        "--bclen", "16",
        "--end-cache-capacity", "5000000",
    ]


def test_scatac_requires_barcodes(index, tmp_path: Path):
    with pytest.raises(ConfigurationError, match="barcode"):
        MapScAtacOpts(index=index, output=tmp_path, barcode=(), reads=("r",)).as_argv()


def test_map_reads_invokes_engine(index, tmp_path: Path):
    engine = FakeEngine("bulk_ref_mapper")
    opts = MapBulkOpts(index=index, output=tmp_path, reads=("r.fq",), threads=2)
    argv = map_reads(opts, engine=engine, ncpus=4)
    assert engine.calls == [argv]


def test_map_reads_failure(index, tmp_path: Path):
    engine = FakeEngine("sc_ref_mapper", exit_code=5)
    opts = MapSCOpts(index=index, geometry="g", read1=("a",), read2=("b",), output=tmp_path, threads=1)
    with pytest.raises(StageFailure) as exc_info:
        map_reads(opts, engine=engine, ncpus=4)
    assert (exc_info.value.stage_name, exc_info.value.exit_code) == ("map-sc", 5)


@pytest.mark.parametrize("threads", [0, 5])
def test_map_reads_thread_check(index, tmp_path: Path, threads):
    engine = FakeEngine("bulk_ref_mapper")
    opts = MapBulkOpts(index=index, output=tmp_path, reads=("r",), threads=threads)
    with pytest.raises(ConfigurationError):
        map_reads(opts, engine=engine, ncpus=4)
    assert engine.calls == []


def test_map_reads_nul_rejected(index, tmp_path: Path):
    engine = FakeEngine("bulk_ref_mapper")
    opts = MapBulkOpts(index=index, output=tmp_path, reads=("r\x00.fq",), threads=1)
    with pytest.raises(MarshalError):
        map_reads(opts, engine=engine, ncpus=4)
    assert engine.calls == []
