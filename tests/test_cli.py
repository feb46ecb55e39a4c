from pathlib import Path

import pandas as pd
import pytest
import yaml

import scansplit_plan
from scansplit.codec import decode


def _write_job(tmp_path: Path, partitioning: str = None) -> Path:
    cfg = tmp_path / "job.yaml"
    cfg.write_text(
        """
table: events
partitioning:
{partitioning}
scans:
  - {{start_row: "a", stop_row: "c", columns: ["d:email"]}}
  - {{start_row: "k", stop_row: "r"}}
        """.format(
            partitioning=partitioning
            or "  type: static\n  split_keys: [\"b\", \"m\"]\n  locations: [rs1, rs2, rs3]"
        ).strip(),
        encoding="utf-8",
    )
    return cfg


@pytest.fixture(autouse=True)
def _restore_logging(restore_root_logger):
    yield


def test_prints_splits(tmp_path, capsys):
    cfg = _write_job(tmp_path)

    rc = scansplit_plan.main(["--config", str(cfg), "--quiet"])

    assert rc == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines == [
        "events#0 ['a', 'b') on events,00000",
        "events#0 ['b', 'c') on events,00001",
        "events#1 ['k', 'm') on events,00001",
        "events#1 ['m', 'r') on events,00002",
    ]


def test_writes_manifest(tmp_path):
    cfg = _write_job(tmp_path)
    out = tmp_path / "out" / "splits.csv"

    rc = scansplit_plan.main(
        ["--config", str(cfg), "--output", str(out), "--workers", "2", "--log-format", "json", "-q"]
    )

    assert rc == 0
    df = pd.read_csv(out, keep_default_na=False)
    assert df["scan_index"].tolist() == [0, 0, 1, 1]
    assert df["locations"].tolist() == ["rs1", "rs2", "rs2", "rs3"]


def test_format_overrides_suffix(tmp_path):
    cfg = _write_job(tmp_path)
    out = tmp_path / "splits.dat"

    rc = scansplit_plan.main(["--config", str(cfg), "--output", str(out), "--format", "json", "-q"])

    assert rc == 0
    assert len(out.read_text(encoding="utf-8").splitlines()) == 4


def test_print_config(tmp_path, capsys):
    cfg = _write_job(tmp_path)

    rc = scansplit_plan.main(["--config", str(cfg), "--print-config", "-q"])

    assert rc == 0
    conf = yaml.safe_load(capsys.readouterr().out)
    assert conf["scansplit.input.table"] == "events"
    assert conf["scansplit.scan.count"] == "2"
    assert conf["scansplit.scan.compressed"] == "false"
    assert decode(conf["scansplit.scan.1"]).start_row == b"k"


def test_list_partitioning(capsys):
    assert scansplit_plan.main(["--list-partitioning"]) == 0
    out = capsys.readouterr().out
    assert "  - rest" in out
    assert "  - static" in out


def test_config_is_required(capsys):
    with pytest.raises(SystemExit) as exc_info:
        scansplit_plan.main([])
    assert exc_info.value.code == 2
    assert "--config is required" in capsys.readouterr().err


def test_invalid_format_is_usage_error():
    with pytest.raises(SystemExit) as exc_info:
        scansplit_plan.main(["--config", "job.yaml", "--format", "xml"])
    assert exc_info.value.code == 2


def test_missing_job_file_exits_one(tmp_path, capsys):
    rc = scansplit_plan.main(["--config", str(tmp_path / "missing.yaml")])
    assert rc == 1
    assert "CFG001" in capsys.readouterr().err


def test_inconsistent_partitions_exit_one(tmp_path, capsys):
    cfg = _write_job(
        tmp_path,
        partitioning=(
            "  type: static\n"
            "  partitions:\n"
            "    - {name: r1, end: \"c\"}\n"
            "    - {name: r2, start: \"d\"}"
        ),
    )

    rc = scansplit_plan.main(["--config", str(cfg)])

    assert rc == 1
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "SPL001" in captured.err


def test_unknown_partitioning_type_exits_one(tmp_path, capsys):
    cfg = _write_job(tmp_path, partitioning="  type: zookeeper")
    assert scansplit_plan.main(["--config", str(cfg)]) == 1
    assert "Unknown partitioning type" in capsys.readouterr().err


def test_non_integer_workers_exit_one(tmp_path, capsys, monkeypatch):
    monkeypatch.delenv("SCANSPLIT_WORKERS", raising=False)
    cfg = _write_job(tmp_path)
    cfg.write_text(cfg.read_text(encoding="utf-8") + '\nworkers: "${SCANSPLIT_WORKERS:abc}"\n', encoding="utf-8")

    rc = scansplit_plan.main(["--config", str(cfg)])

    assert rc == 1
    assert "CFG001" in capsys.readouterr().err
