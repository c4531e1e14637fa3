"""Tests for the Typer command line interface."""

from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from medregistry.adapters.ledger import DuckDBLedger
from medregistry.cli import app

runner = CliRunner()


@pytest.fixture
def duckdb_file(tmp_path):
    db_path = str(tmp_path / "registry.duckdb")
    with patch("medregistry.cli.create_ledger_adapter", side_effect=lambda: DuckDBLedger(db_path=db_path)):
        yield db_path


class TestCli:
    """Test suite for CLI commands."""

    def test_operations(self):
        result = runner.invoke(app, ["operations"])
        assert result.exit_code == 0
        assert "assignDiseaseToPatient" in result.stdout

    def test_invoke_round_trip(self, duckdb_file):
        assert runner.invoke(app, ["invoke", "createPatient", "1", "Ali", "Cairo"]).exit_code == 0

        result = runner.invoke(app, ["invoke", "getPatientbyID", "1"])
        assert result.exit_code == 0
        assert '"ali"' in result.stdout

    def test_invoke_failure_exit_code(self, duckdb_file):
        result = runner.invoke(app, ["invoke", "getPatientbyID", "1"])
        assert result.exit_code == 1

    def test_unknown_operation(self, duckdb_file):
        result = runner.invoke(app, ["invoke", "dropEverything"])
        assert result.exit_code == 1

    def test_list_ids(self, duckdb_file):
        runner.invoke(app, ["invoke", "createPatient", "3", "Ali", "Cairo"])
        runner.invoke(app, ["invoke", "createDisease", "7", "Flu", "desc"])

        result = runner.invoke(app, ["list-ids", "patient"])
        assert result.exit_code == 0
        assert "3" in result.stdout.split()

        result = runner.invoke(app, ["list-ids", "disease"])
        assert "7" in result.stdout.split()

    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "MedRegistry v1.0.0" in result.stdout
