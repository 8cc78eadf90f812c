"""
Tests for the gastos-pipeline entry point (gastos.pipeline.main).
"""

import pytest

from gastos.cache import AnalysisCache
from gastos.pipeline import REGISTRY, main
from gastos.store import Store


def _exit_code(argv) -> int:
    with pytest.raises(SystemExit) as exc:
        main(argv)
    return exc.value.code


def test_list_steps(capsys):
    assert _exit_code(["--list"]) == 0
    out = capsys.readouterr().out
    for name in REGISTRY:
        assert name in out


def test_malformed_environment_is_fatal(monkeypatch, tmp_path, capsys):
    """A bad setting stops the process before any step runs."""
    monkeypatch.setenv("GASTOS_BATCH_SIZE", "many")
    assert _exit_code(["--only", "migrate", "--db", str(tmp_path / "w.duckdb")]) == 1
    assert "ERROR:" in capsys.readouterr().out
    assert not (tmp_path / "w.duckdb").exists()


def test_non_positive_batch_size_flag(tmp_path):
    assert _exit_code(["--only", "migrate", "--db", str(tmp_path / "w.duckdb"), "--batch-size", "0"]) == 1


def test_unknown_step():
    assert _exit_code(["--only", "migrate,nope"]) == 1


def test_migrate_then_flush(monkeypatch, tmp_path):
    """migrate creates the warehouse; flush_cache empties the cache table."""
    monkeypatch.delenv("GASTOS_BATCH_SIZE", raising=False)
    db = tmp_path / "warehouse" / "w.duckdb"

    main(["--only", "migrate", "--db", str(db)])
    assert db.exists()

    with Store.open(db) as store:
        AnalysisCache(store).set("deputies:", "[]")

    main(["--only", "flush_cache", "--db", str(db)])
    with Store.open(db) as store:
        assert AnalysisCache(store).size() == 0
