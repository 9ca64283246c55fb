"""Tests for the command-line interface."""

import pytest

from database import query_history
from main import build_parser, main


def test_parser_knows_every_command():
    parser = build_parser()
    for command in ["init", "seed", "stats", "dashboard", "schedule", "serve", "insights", "history"]:
        assert parser.parse_args([command]).command == command


def test_search_arguments():
    args = build_parser().parse_args(["search", "JFK", "MIA", "--date", "2024-04-12", "--return", "2024-04-19", "--flex", "2"])
    assert args.return_date == "2024-04-19"
    assert args.flex == 2


def test_record_command(temp_db):
    main(["record", "JetBlue", "jfk", "mia", "--date", "2024-04-12", "--price", "189"])

    stored = query_history("JFK", "MIA")
    assert len(stored) == 1
    assert stored[0].price == 189.0


def test_record_rejects_bad_price(temp_db):
    with pytest.raises(SystemExit) as exc_info:
        main(["record", "JetBlue", "JFK", "MIA", "--date", "2024-04-12", "--price", "0"])

    assert exc_info.value.code == 1
    assert query_history() == []


def test_seed_and_insights_commands(temp_db, capsys):
    main(["seed"])
    main(["insights", "JFK", "MIA"])

    output = capsys.readouterr().out
    assert "16 mock observations" in output
    assert "Strong Buy Recommendation" in output
