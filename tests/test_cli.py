"""Tests for the portfolio-register CLI."""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from portfolio_register import cli
from portfolio_register.cli import main
from portfolio_register.persistence import load_portfolio


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.setattr(cli.console, "width", 200)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    return tmp_path


@pytest.fixture
def runner():
    return CliRunner()


def _invoke(runner, *args):
    return runner.invoke(main, ["-p", "portfolio.json", *args])


class TestRegistryCommands:
    """init, add, list, edit, delete and link."""

    def test_help(self, runner):
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "Application Portfolio Register" in result.output

    def test_init(self, runner, workdir):
        result = _invoke(runner, "init")
        assert result.exit_code == 0
        assert (workdir / "portfolio.json").exists()

        result = _invoke(runner, "init")
        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_add_and_list(self, runner, workdir):
        result = _invoke(runner, "add", "--name", "Ledger", "--code", "FIN-1",
                         "--value", "high", "--health", "90")
        assert result.exit_code == 0, result.output
        assert "Added FIN-1" in result.output
        assert "INVEST" in result.output

        store = load_portfolio(workdir / "portfolio.json")
        app = store.applications[0]
        assert app.code == "FIN-1"
        assert app.capability_id == "CAP-FINANCE"

        result = _invoke(runner, "list")
        assert result.exit_code == 0
        assert "FIN-1" in result.output
        assert "1 applications" in result.output

    def test_list_filters(self, runner, workdir):
        _invoke(runner, "add", "--name", "Ledger", "--code", "FIN-1", "--domain", "Finance")
        _invoke(runner, "add", "--name", "Portal", "--code", "WEB-1", "--domain", "Commercial",
                "--value", "HIGH", "--health", "80")

        result = _invoke(runner, "list", "--domain", "Finance")
        assert "FIN-1" in result.output
        assert "WEB-1" not in result.output

        result = _invoke(runner, "list", "--disposition", "invest")
        assert "WEB-1" in result.output
        assert "FIN-1" not in result.output

    def test_edit_by_code(self, runner, workdir):
        _invoke(runner, "add", "--name", "Ledger", "--code", "FIN-1")
        result = _invoke(runner, "edit", "FIN-1", "--set", "health=95", "--set", "value=critical",
                         "--set", "pii=high", "--set", "cost=1200")
        assert result.exit_code == 0, result.output
        assert "INVEST" in result.output

        app = load_portfolio(workdir / "portfolio.json").applications[0]
        assert app.health == 95
        assert app.security.pii_risk.value == "HIGH"
        assert app.costs.total == 1200

    def test_edit_rejects_invalid_value(self, runner, workdir):
        _invoke(runner, "add", "--name", "Ledger", "--code", "FIN-1")
        result = _invoke(runner, "edit", "FIN-1", "--set", "tier=MAINFRAME")
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_edit_unknown_app(self, runner, workdir):
        result = _invoke(runner, "edit", "NOPE", "--set", "health=1")
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_delete(self, runner, workdir):
        _invoke(runner, "add", "--name", "Ledger", "--code", "FIN-1")
        result = _invoke(runner, "delete", "FIN-1")
        assert result.exit_code == 0
        assert len(load_portfolio(workdir / "portfolio.json")) == 0

        result = _invoke(runner, "delete", "FIN-1")
        assert result.exit_code == 0
        assert "nothing deleted" in result.output

    def test_link_toggles(self, runner, workdir):
        _invoke(runner, "add", "--name", "Portal", "--code", "WEB-1")
        _invoke(runner, "add", "--name", "Ledger", "--code", "FIN-1")

        result = _invoke(runner, "link", "WEB-1", "FIN-1")
        assert "Linked WEB-1 -> FIN-1" in result.output
        store = load_portfolio(workdir / "portfolio.json")
        web, fin = store.applications
        assert web.downstream_ids == [fin.id]

        result = _invoke(runner, "link", "WEB-1", "FIN-1")
        assert "Unlinked" in result.output
        assert load_portfolio(workdir / "portfolio.json").applications[0].downstream_ids == []


class TestImportExport:
    """import and export."""

    def _write_csv(self, workdir):
        path = workdir / "apps.csv"
        path.write_text(
            "Name,Code,Tier,Value,Health,Owner\n"
            "Payroll,HR-01,CORE,HIGH,75,Jane\n"
            ",HR-02,CORE,HIGH,75,Jane\n",
            encoding="utf-8",
        )
        return path

    def test_import_dry_run(self, runner, workdir):
        path = self._write_csv(workdir)
        result = _invoke(runner, "import", str(path))

        assert result.exit_code == 0, result.output
        assert "1 Valid" in result.output
        assert "1 Invalid" in result.output
        assert "Missing Name" in result.output
        assert not (workdir / "portfolio.json").exists()

    def test_import_commit_and_export(self, runner, workdir):
        path = self._write_csv(workdir)
        result = _invoke(runner, "import", str(path), "--commit")
        assert result.exit_code == 0, result.output
        assert "Imported 1 applications" in result.output
        assert load_portfolio(workdir / "portfolio.json").codes() == ["HR-01"]

        result = _invoke(runner, "export")
        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert lines[0].startswith("ID,Name,Code,Tier")
        assert ",HR-01," in lines[1]

        result = _invoke(runner, "export", "--out", "out.csv")
        assert "Exported 1 applications" in result.output
        assert (workdir / "out.csv").exists()

    def test_import_without_header(self, runner, workdir):
        path = workdir / "empty.csv"
        path.write_text("", encoding="utf-8")
        result = _invoke(runner, "import", str(path))
        assert result.exit_code == 1
        assert "no header row" in result.output


class TestViews:
    """landscape and graph."""

    def test_landscape_flags_redundancy(self, runner, workdir):
        for i in range(4):
            _invoke(runner, "add", "--name", f"App {i}", "--code", f"FIN-{i}",
                    "--capability", "CAP-FINANCE", "--domain", "Finance")
        result = _invoke(runner, "landscape")

        assert result.exit_code == 0, result.output
        assert "Finance" in result.output
        assert "REDUNDANT" in result.output

    def test_graph_json(self, runner, workdir):
        _invoke(runner, "add", "--name", "Portal", "--code", "WEB-1", "--tier", "CHANNEL", "--pii", "HIGH")
        _invoke(runner, "add", "--name", "Ledger", "--code", "FIN-1")
        _invoke(runner, "link", "WEB-1", "FIN-1")

        result = _invoke(runner, "graph", "--json-output")
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert len(data["nodes"]) == 2
        assert data["edges"][0]["high_risk"] is True

    def test_graph_scope(self, runner, workdir):
        _invoke(runner, "add", "--name", "Portal", "--code", "WEB-1", "--domain", "Commercial")
        _invoke(runner, "add", "--name", "Ledger", "--code", "FIN-1", "--domain", "Finance")
        result = _invoke(runner, "graph", "--scope", "Finance", "--json-output")
        data = json.loads(result.output)
        assert [n["code"] for n in data["nodes"]] == ["FIN-1"]


class TestVocabAndConfig:
    """vocab, config-init and ask."""

    def test_vocab(self, runner, workdir):
        result = _invoke(runner, "vocab", "add", "capability", "CAP-AAA")
        assert result.exit_code == 0
        result = _invoke(runner, "vocab", "remove", "domain", "HR")
        assert result.exit_code == 0

        store = load_portfolio(workdir / "portfolio.json")
        assert store.capabilities[0] == "CAP-AAA"
        assert "HR" not in store.domains

        result = _invoke(runner, "vocab", "list")
        assert "CAP-AAA" in result.output

    def test_config_init_and_use(self, runner, workdir):
        result = runner.invoke(main, ["config-init"])
        assert result.exit_code == 0
        config = workdir / "register-config.yaml"
        assert config.exists()

        config.write_text("vocabulary:\n  capabilities: [CAP-ONLY]\n", encoding="utf-8")
        _invoke(runner, "add", "--name", "Ledger", "--code", "FIN-1")
        app = load_portfolio(workdir / "portfolio.json").applications[0]
        assert app.capability_id == "CAP-ONLY"

    def test_ask_without_key(self, runner, workdir):
        result = _invoke(runner, "ask", "What should we retire?")
        assert result.exit_code == 0
        assert "Configuration Error" in result.output

    @patch("portfolio_register.cli.ask")
    def test_ask_uses_env_key(self, mock_ask, runner, workdir, monkeypatch):
        monkeypatch.setenv("PORTFOLIO_ADVISOR_API_KEY", "secret")
        mock_ask.return_value = "Retire FIN-1."

        result = _invoke(runner, "ask", "What should we retire?")

        assert result.exit_code == 0
        assert "Retire FIN-1." in result.output
        assert mock_ask.call_args.args[2] == "secret"

    @pytest.mark.parametrize("args", [
        ("vocab", "list"),
        ("vocab", "add", "domain", "Retail"),
        ("vocab", "remove", "domain", "HR"),
        ("ask", "Anything?"),
    ])
    def test_corrupt_portfolio_is_reported(self, runner, workdir, args):
        (workdir / "portfolio.json").write_text("{not json", encoding="utf-8")

        result = _invoke(runner, *args)

        assert result.exit_code == 1
        assert "Error" in result.output
        assert "not valid JSON" in result.output

    def test_vocab_add_rejects_blank(self, runner, workdir):
        result = _invoke(runner, "vocab", "add", "capability", "  ")
        assert result.exit_code == 1
        assert "must not be blank" in result.output
        assert not (workdir / "portfolio.json").exists()
