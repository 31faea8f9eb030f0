from __future__ import annotations

from pathlib import Path

from lot_inventory.cli import main as cli_main

"""Exit code contract: 0 clean / 2 degraded or remote failure / 1 fatal."""


def test_exit_code_fatal_startup(temp_workdir: Path, capsys):
    # config/lots.yml 無し -> exit 1
    assert cli_main(["import", "data/x.csv"]) == 1
    assert "ERROR config:" in capsys.readouterr().out


def test_exit_code_invalid_config(write_config: Path, capsys):
    write_config.write_text("project: MVLC\nunknown_key: 1\n", encoding="utf-8")
    assert cli_main(["list"]) == 1
    assert "config validation failed" in capsys.readouterr().out


def test_exit_code_clean(write_config: Path, sample_csv: Path):
    assert cli_main(["import", str(sample_csv)]) == 0


def test_exit_code_degraded(write_config: Path, temp_workdir: Path):
    f = temp_workdir / "data" / "noheader.csv"
    f.write_text("A-1,1,120,Open\nA-2,2,90,Sold\n", encoding="utf-8")
    assert cli_main(["import", str(f)]) == 2


def test_exit_code_unsupported_file(write_config: Path, temp_workdir: Path, capsys):
    f = temp_workdir / "data" / "lots.docx"
    f.write_bytes(b"PK")
    assert cli_main(["import", str(f)]) == 1
    assert "unsupported file type" in capsys.readouterr().out
