"""Tests for flattened CSV export."""

from portfolio_register.exporter import EXPORT_COLUMNS, export_csv, flatten, write_export
from portfolio_register.importer import ImportValidator, parse_csv, stage_csv
from portfolio_register.schema import AppTier, Application, BusinessValue, PiiRisk
from portfolio_register.store import PortfolioStore


def _app(**fields):
    defaults = dict(
        id="id-1",
        name="Payroll, EMEA",
        code="HR-01",
        tier=AppTier.CORE,
        value=BusinessValue.HIGH,
        health=82,
        capability_id="CAP-HR",
        domain="HR",
        owner="Jane",
        description='Runs "monthly" payroll',
        security={"gdpr_compliant": True, "pii_risk": PiiRisk.HIGH},
        costs={"license": 1000, "maintenance": 250.5, "total": 1500},
    )
    defaults.update(fields)
    return Application(**defaults)


class TestFlatten:
    """Tests for flatten()."""

    def test_flatten(self):
        row = flatten(_app())
        assert list(row) == EXPORT_COLUMNS
        assert row["ID"] == "id-1"
        assert row["Tier"] == "CORE"
        assert row["Status"] == "ACTIVE"
        assert row["Cost"] == "1500"
        assert row["MaintenanceCost"] == "250.5"
        assert row["PII"] == "HIGH"
        assert row["GDPR"] == "true"


class TestExportCsv:
    """Tests for export_csv() and write_export()."""

    def test_header_only_for_empty_portfolio(self):
        assert export_csv([]) == ",".join(EXPORT_COLUMNS) + "\n"

    def test_quoting(self):
        text = export_csv([_app()])
        assert '"Payroll, EMEA"' in text
        assert '"Runs ""monthly"" payroll"' in text

    def test_round_trip_through_importer(self):
        original = _app()
        rows = parse_csv(export_csv([original]))
        result = ImportValidator().validate(rows[0])

        assert result.is_valid
        assert result.warnings == []
        copy = result.candidate
        assert copy.id != original.id
        assert copy.model_dump(exclude={"id"}) == original.model_dump(exclude={"id"})

    def test_round_trip_keeps_surrounding_whitespace(self):
        store = PortfolioStore()
        store.create_application(" Payroll ", " HR-1", owner="Jane ")

        fresh = PortfolioStore()
        stage_csv(export_csv(store.applications), fresh).commit(fresh)

        assert [a.name for a in fresh] == [" Payroll "]
        assert fresh.codes() == [" HR-1"]
        assert [a.owner for a in fresh] == ["Jane "]

    def test_write_export(self, tmp_path):
        path = tmp_path / "out" / "portfolio.csv"
        count = write_export([_app(), _app(id="id-2", code="HR-02")], path)

        assert count == 2
        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 3
        assert lines[0].startswith("ID,Name,Code")
