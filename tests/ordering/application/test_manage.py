"""Application tests for the database management CLI."""

import pytest
from manage import main
from ordering.domain import ordering
from ordering.utils.db import drop_db, setup_db


@pytest.fixture()
def initialized(monkeypatch):
    """The session already initialized the domain; skip re-initialization."""
    monkeypatch.setattr(ordering, "init", lambda: None)


class TestSchemaManagement:
    def test_memory_provider_needs_no_schema(self):
        assert setup_db(ordering) == []
        assert drop_db(ordering) == []

    def test_setup_db_command(self, initialized, capsys):
        main(["setup-db"])
        out = capsys.readouterr().out
        assert "no SQL providers configured" in out
        assert "Done." in out

    def test_drop_db_command(self, initialized, capsys):
        main(["drop-db"])
        assert "schema dropped" in capsys.readouterr().out

    def test_command_required(self):
        with pytest.raises(SystemExit):
            main([])
