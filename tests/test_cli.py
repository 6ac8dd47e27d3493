# tests/test_cli.py
import json

from booker_ledger.database.repositories import (
    CompaniesRepo,
    DailyEntriesRepo,
    MonthlyTargetsRepo,
    OrderBookersRepo,
    OrdersRepo,
)
from booker_ledger.database.seeders.sample_data import COMPANIES, ORDER_BOOKERS, seed
from booker_ledger.main import main


def test_seed_fills_an_empty_database(db):
    assert seed(db, 2024, 2, days=3) is True
    assert len(CompaniesRepo(db).list()) == len(COMPANIES)
    assert len(OrderBookersRepo(db).list()) == len(ORDER_BOOKERS)
    assert len(MonthlyTargetsRepo(db).list_by_month(2024, 2)) == len(ORDER_BOOKERS)
    assert len(DailyEntriesRepo(db).list_by_month(2024, 2)) == 3 * len(ORDER_BOOKERS)
    assert len(OrdersRepo(db).list()) == 3

    for t in MonthlyTargetsRepo(db).list_by_month(2024, 2):
        assert t.achieved_amount > 0

    assert seed(db, 2024, 2) is False


def test_cli_init_and_health(tmp_path, capsys):
    path = str(tmp_path / "cli.db")
    assert main(["--db", path, "init"]) == 0
    assert "Database ready" in capsys.readouterr().out

    assert main(["--db", path, "health"]) == 0
    result = json.loads(capsys.readouterr().out)
    assert result["status"] in ("healthy", "degraded")


def test_cli_reports_after_seed(tmp_path, capsys):
    path = str(tmp_path / "cli.db")
    assert main(["--db", path, "seed", "--year", "2024", "--month", "3", "--days", "2"]) == 0
    assert "Sample data inserted." in capsys.readouterr().out

    assert main(["--db", path, "monthly", "--year", "2024", "--month", "3"]) == 0
    out = capsys.readouterr().out
    assert "2024-03" in out
    assert "entries           10" in out

    assert main(["--db", path, "performance", "--from", "2024-03-01", "--to", "2024-03-31"]) == 0
    assert "1. " in capsys.readouterr().out

    assert main(["--db", path, "compare", "--year", "2024", "--month", "3"]) == 0
    assert "2024-03 vs 2024-02" in capsys.readouterr().out

    assert main(["--db", path, "dashboard", "--year", "2024", "--month", "3"]) == 0
    out = capsys.readouterr().out
    assert "2024-03 dashboard" in out
    assert "margin" in out


def test_cli_reports_bad_input(tmp_path, capsys):
    path = str(tmp_path / "cli.db")
    assert main(["--db", path, "performance", "--from", "2024-03-31", "--to", "2024-03-01"]) == 2
    assert "Error:" in capsys.readouterr().err
