"""CLI for the Application Portfolio Register.

Keeps a portfolio in a JSON document and exposes registry, import/export,
landscape, dependency-graph and advisory views over it.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from .advisory import ask
from .config import activate_config, discover_config, get_config, write_default_config
from .exporter import export_csv, write_export
from .graph import build_graph
from .grouping import group_by_domain, summarize
from .importer import ImportValidator, RowStatus, read_csv
from .persistence import load_portfolio, save_portfolio
from .schema import (
    AppTier,
    BusinessValue,
    DataSensitivity,
    DispositionLabel,
    LifecycleStatus,
    PiiRisk,
    SCOPE_ALL,
    TIER_ORDER,
    TechnicalDebt,
)
from .store import PortfolioStore

console = Console()

TONE_STYLES = {
    "green": "green",
    "red": "red",
    "blue": "blue",
    "gray": "bright_black",
}

STATUS_STYLES = {
    RowStatus.OK: "[green]Ready[/green]",
    RowStatus.WARNING: "[yellow]Warning[/yellow]",
    RowStatus.ERROR: "[red]Error[/red]",
}

# Friendly names accepted by `edit --set`.
EDIT_FIELD_ALIASES = {
    "capability": "capability_id",
    "pii": "security.pii_risk",
    "gdpr": "security.gdpr_compliant",
    "status": "lifecycle.status",
    "debt": "technical_debt",
    "sensitivity": "data_sensitivity",
    "cost": "costs.total",
    "license": "costs.license",
    "maintenance": "costs.maintenance",
}


def _choice(enum_cls) -> click.Choice:
    return click.Choice([m.value for m in enum_cls], case_sensitive=False)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _open_store(portfolio: Path) -> PortfolioStore:
    """Load the portfolio, or start an empty one if the file is missing."""
    if portfolio.exists():
        return load_portfolio(portfolio)
    return PortfolioStore()


def _find_app(store: PortfolioStore, ident: str):
    """Resolve an application by id, falling back to code."""
    app = store.get(ident)
    if app is None:
        app = next((a for a in store if a.code == ident), None)
    return app


def _money(amount: float) -> str:
    return f"${amount:,.0f}"


@click.group()
@click.version_option(version="1.0.0", prog_name="portfolio-register")
@click.option(
    "--portfolio", "-p",
    type=click.Path(dir_okay=False, path_type=Path),
    default="portfolio.json",
    show_default=True,
    help="Path to the portfolio JSON document"
)
@click.option(
    "--config", "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration YAML file"
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Enable debug logging"
)
@click.pass_context
def main(ctx: click.Context, portfolio: Path, config: Optional[Path], verbose: bool):
    """Application Portfolio Register.

    Catalogs applications with ownership, cost, risk and dependency data and
    derives a TIME-model disposition (invest/tolerate/migrate/eliminate) for
    each one.
    """
    _configure_logging(verbose)

    try:
        activate_config(discover_config(config))
    except Exception as e:
        console.print(f"[yellow]Warning:[/yellow] Could not load config: {e}")
        activate_config()

    ctx.ensure_object(dict)
    ctx.obj["portfolio"] = portfolio


# =============================================================================
# Registry commands
# =============================================================================


@main.command("init")
@click.option("--force", is_flag=True, help="Overwrite an existing portfolio")
@click.pass_context
def init_cmd(ctx: click.Context, force: bool):
    """Create an empty portfolio seeded with the configured vocabularies."""
    portfolio: Path = ctx.obj["portfolio"]
    if portfolio.exists() and not force:
        console.print(f"[yellow]{portfolio} already exists (use --force to overwrite)[/yellow]")
        sys.exit(1)
    save_portfolio(PortfolioStore(), portfolio)
    console.print(f"[green]Created empty portfolio: {portfolio}[/green]")


@main.command("list")
@click.option("--domain", "-d", help="Only show applications of this domain")
@click.option(
    "--disposition",
    type=click.Choice([d.value for d in DispositionLabel], case_sensitive=False),
    help="Only show applications with this disposition"
)
@click.pass_context
def list_cmd(ctx: click.Context, domain: Optional[str], disposition: Optional[str]):
    """List applications with their derived disposition."""
    try:
        store = _open_store(ctx.obj["portfolio"])
        rows = store.enriched()
        if domain:
            rows = [r for r in rows if r.application.domain == domain]
        if disposition:
            rows = [r for r in rows if r.disposition.label.value == disposition.upper()]

        table = Table(show_header=True, header_style="bold")
        table.add_column("Code", style="cyan", no_wrap=True)
        table.add_column("Name")
        table.add_column("Tier")
        table.add_column("Value")
        table.add_column("Health", justify="right")
        table.add_column("Disposition")
        table.add_column("Capability")
        table.add_column("Domain")
        table.add_column("Cost", justify="right")
        table.add_column("ID", style="dim")

        for row in rows:
            app = row.application
            style = TONE_STYLES.get(row.tone, "white")
            table.add_row(
                app.code,
                app.name,
                app.tier.value,
                app.value.value,
                str(app.health),
                f"[{style}]{row.disposition.label.value}[/{style}]",
                app.capability_id or "Unassigned",
                app.domain or "Unassigned",
                _money(app.costs.total),
                app.id[:8],
            )

        console.print(table)
        summary = summarize(rows)
        console.print(
            f"\n{summary.application_count} applications | "
            f"Total spend: {_money(summary.total_cost)}"
        )

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@main.command("add")
@click.option("--name", required=True, help="Application name")
@click.option("--code", required=True, help="Application code (unique by policy)")
@click.option("--tier", type=_choice(AppTier), default="CORE", show_default=True)
@click.option("--value", "business_value", type=_choice(BusinessValue), default="STANDARD", show_default=True)
@click.option("--health", type=click.IntRange(0, 100), default=50, show_default=True)
@click.option("--capability", help="Capability (defaults to the first in the vocabulary)")
@click.option("--domain", help="Domain (defaults to the first in the vocabulary)")
@click.option("--owner", default="", help="Owner / data steward")
@click.option("--description", default="")
@click.option("--status", type=_choice(LifecycleStatus), default="ACTIVE", show_default=True)
@click.option("--pii", type=_choice(PiiRisk), default="NONE", show_default=True)
@click.option("--gdpr/--no-gdpr", default=False, help="GDPR compliant")
@click.option("--debt", type=_choice(TechnicalDebt), default="MEDIUM", show_default=True)
@click.option("--sensitivity", type=_choice(DataSensitivity), default="INTERNAL", show_default=True)
@click.option("--license", "license_cost", type=click.FloatRange(min=0), default=0.0)
@click.option("--maintenance", type=click.FloatRange(min=0), default=0.0)
@click.option("--cost", type=click.FloatRange(min=0), help="Total cost (defaults to license + maintenance)")
@click.pass_context
def add_cmd(ctx: click.Context, name, code, tier, business_value, health, capability, domain,
            owner, description, status, pii, gdpr, debt, sensitivity, license_cost,
            maintenance, cost):
    """Add a new application to the portfolio."""
    portfolio: Path = ctx.obj["portfolio"]
    try:
        store = _open_store(portfolio)
        fields = dict(
            tier=AppTier.from_string(tier),
            value=BusinessValue.from_string(business_value),
            health=health,
            owner=owner,
            description=description,
            lifecycle={"status": LifecycleStatus.from_string(status)},
            security={"gdpr_compliant": gdpr, "pii_risk": PiiRisk.from_string(pii)},
            technical_debt=TechnicalDebt.from_string(debt),
            data_sensitivity=DataSensitivity.from_string(sensitivity),
            costs={"license": license_cost, "maintenance": maintenance, "total": cost},
        )
        if capability:
            fields["capability_id"] = capability
        if domain:
            fields["domain"] = domain

        if code in store.codes():
            console.print(f"[yellow]Warning: code {code} is already in use[/yellow]")
        app = store.create_application(name, code, **fields)
        save_portfolio(store, portfolio)

        enriched = store.enriched_one(app.id)
        console.print(
            f"[green]✓ Added {app.code}[/green] ({app.id}) -> "
            f"{enriched.disposition.label.value}"
        )

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@main.command("edit")
@click.argument("app")
@click.option(
    "--set", "assignments",
    multiple=True,
    required=True,
    help="Field assignment (format: field=value), e.g. --set health=80 --set cost=120000"
)
@click.pass_context
def edit_cmd(ctx: click.Context, app: str, assignments: tuple):
    """Edit fields of an application (by id or code)."""
    portfolio: Path = ctx.obj["portfolio"]
    try:
        store = _open_store(portfolio)
        target = _find_app(store, app)
        if target is None:
            console.print(f"[red]Application not found: {app}[/red]")
            sys.exit(1)

        changes = {}
        for assignment in assignments:
            if "=" not in assignment:
                raise click.BadParameter(f"Expected field=value, got: {assignment}")
            key, value = assignment.split("=", 1)
            key = key.strip()
            changes[EDIT_FIELD_ALIASES.get(key, key)] = value.strip()

        store.edit(target.id, changes)
        save_portfolio(store, portfolio)

        enriched = store.enriched_one(target.id)
        console.print(
            f"[green]✓ Updated {target.code}[/green] -> {enriched.disposition.label.value}"
        )

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@main.command("delete")
@click.argument("app")
@click.pass_context
def delete_cmd(ctx: click.Context, app: str):
    """Delete an application (by id or code)."""
    portfolio: Path = ctx.obj["portfolio"]
    try:
        store = _open_store(portfolio)
        target = _find_app(store, app)
        if target is None:
            console.print(f"[yellow]No application matches {app}; nothing deleted[/yellow]")
            return
        store.delete(target.id)
        save_portfolio(store, portfolio)
        console.print(f"[green]✓ Deleted {target.code}[/green]")

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@main.command("link")
@click.argument("source")
@click.argument("target")
@click.option(
    "--direction",
    type=click.Choice(["downstream", "upstream"]),
    default="downstream",
    show_default=True,
    help="Which dependency list of SOURCE to toggle TARGET in"
)
@click.pass_context
def link_cmd(ctx: click.Context, source: str, target: str, direction: str):
    """Toggle a dependency from SOURCE to TARGET (ids or codes)."""
    portfolio: Path = ctx.obj["portfolio"]
    try:
        store = _open_store(portfolio)
        src = _find_app(store, source)
        dst = _find_app(store, target)
        if src is None or dst is None:
            console.print(f"[red]Application not found: {source if src is None else target}[/red]")
            sys.exit(1)

        linked = store.toggle_dependency(src.id, dst.id, direction)
        save_portfolio(store, portfolio)
        verb = "Linked" if linked else "Unlinked"
        console.print(f"[green]✓ {verb} {src.code} -> {dst.code} ({direction})[/green]")

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


# =============================================================================
# Import / export
# =============================================================================


@main.command("import")
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--commit", is_flag=True, help="Append valid and warning rows to the portfolio")
@click.pass_context
def import_cmd(ctx: click.Context, csv_file: Path, commit: bool):
    """Validate a CSV file and optionally commit its valid rows.

    Expected columns: Name, Code, Tier, Value, Health, Capability, Owner,
    Domain, Status, PII, GDPR, Debt, License, Maintenance, Sensitivity, Cost.
    """
    portfolio: Path = ctx.obj["portfolio"]
    try:
        store = _open_store(portfolio)
        batch = ImportValidator.for_store(store).validate_rows(read_csv(csv_file))

        table = Table(show_header=True, header_style="bold", title="Staging")
        table.add_column("#", justify="right")
        table.add_column("Status")
        table.add_column("Name")
        table.add_column("Code", style="cyan")
        table.add_column("Tier")
        table.add_column("Value")
        table.add_column("Issues")

        for index, row in enumerate(batch.rows, 1):
            issues = [f"[red]● {e}[/red]" for e in row.errors]
            issues += [f"[yellow]● {w}[/yellow]" for w in row.warnings]
            table.add_row(
                str(index),
                STATUS_STYLES[row.status],
                row.raw.get("Name") or "-",
                row.raw.get("Code") or "-",
                row.raw.get("Tier") or "-",
                row.raw.get("Value") or "-",
                "\n".join(issues),
            )

        console.print(table)
        console.print(
            f"Found {len(batch.rows)} rows. "
            f"[green]{batch.valid_count} Valid[/green] "
            f"[red]{batch.invalid_count} Invalid[/red]"
        )

        if not commit:
            console.print("[dim]Dry run: re-run with --commit to import the valid rows.[/dim]")
            return

        added = batch.commit(store)
        save_portfolio(store, portfolio)
        console.print(f"[green]✓ Imported {len(added)} applications into {portfolio}[/green]")

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@main.command("export")
@click.option(
    "--out", "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output CSV file (default: stdout)"
)
@click.pass_context
def export_cmd(ctx: click.Context, out: Optional[Path]):
    """Export the portfolio as flattened CSV."""
    try:
        store = _open_store(ctx.obj["portfolio"])
        if out:
            count = write_export(store.applications, out)
            console.print(f"[green]Exported {count} applications to {out}[/green]")
        else:
            click.echo(export_csv(store.applications), nl=False)

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


# =============================================================================
# Views
# =============================================================================


@main.command("landscape")
@click.pass_context
def landscape_cmd(ctx: click.Context):
    """Show the domain -> capability landscape with redundancy flags."""
    try:
        store = _open_store(ctx.obj["portfolio"])
        enriched = store.enriched()
        summary = summarize(enriched)

        console.print(Panel(
            f"Applications: {summary.application_count} | "
            f"Total spend: {_money(summary.total_cost)}\n"
            + " | ".join(f"{label}: {count}" for label, count in summary.by_disposition.items())
            + f"\nRedundant capabilities: {summary.redundant_capabilities}",
            title="Portfolio Summary",
        ))

        tree = Tree("[bold]Landscape[/bold]")
        for domain, group in group_by_domain(enriched).items():
            domain_node = tree.add(
                f"[bold]{domain}[/bold] ({group.count} apps, {_money(group.total_cost)})"
            )
            for capability, cap_group in group.capabilities.items():
                flag = " [red]⚠ REDUNDANT[/red]" if cap_group.is_redundant else ""
                cap_node = domain_node.add(
                    f"[cyan]{capability}[/cyan] ({cap_group.count}, {_money(cap_group.total_cost)}){flag}"
                )
                for row in cap_group.members:
                    style = TONE_STYLES.get(row.tone, "white")
                    cap_node.add(
                        f"{row.application.name} [dim]{row.application.code}[/dim] "
                        f"[{style}]{row.disposition.label.value}[/{style}]"
                    )

        console.print(tree)

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@main.command("graph")
@click.option("--scope", "-s", default=SCOPE_ALL, show_default=True, help="Domain to show, or ALL")
@click.option("--json-output", "-j", is_flag=True, help="Output the graph as JSON")
@click.pass_context
def graph_cmd(ctx: click.Context, scope: str, json_output: bool):
    """Show the dependency graph by tier lane, highlighting PII data flows."""
    try:
        store = _open_store(ctx.obj["portfolio"])
        graph = build_graph(store.enriched(), scope=scope)

        if json_output:
            click.echo(json.dumps(graph.to_dict(), indent=2))
            return

        tree = Tree(f"[bold]Dependency graph[/bold] (scope: {scope})")
        for tier in TIER_ORDER:
            lane = tree.add(f"[bold]{tier.value}[/bold]")
            for node in graph.lane(tier):
                marker = " [red]PII[/red]" if node.pii_risk == PiiRisk.HIGH else ""
                lane.add(f"{node.name} [dim]{node.code}[/dim]{marker}")
        console.print(tree)

        if graph.edges:
            console.print("\n[bold]Data flows:[/bold]")
            for edge in graph.edges:
                if edge.is_high_risk:
                    console.print(f"  [bold red]{edge.source.code} ━━▶ {edge.target.code}  (PII)[/bold red]")
                else:
                    console.print(f"  [dim]{edge.source.code} ──▶ {edge.target.code}[/dim]")
        console.print(
            f"\n{len(graph.nodes)} nodes | {len(graph.edges)} edges | "
            f"{len(graph.high_risk_edges())} PII flows"
        )

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


# =============================================================================
# Vocabularies
# =============================================================================

VOCAB_KINDS = click.Choice(["capability", "domain"])


@main.group("vocab")
def vocab_group():
    """Manage the capability and domain vocabularies."""
    pass


@vocab_group.command("list")
@click.pass_context
def vocab_list_cmd(ctx: click.Context):
    """List capabilities and domains."""
    try:
        store = _open_store(ctx.obj["portfolio"])
        console.print("[bold]Capabilities:[/bold]")
        for capability in store.capabilities:
            console.print(f"  - {capability}")
        console.print("[bold]Domains:[/bold]")
        for domain in store.domains:
            console.print(f"  - {domain}")

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@vocab_group.command("add")
@click.argument("kind", type=VOCAB_KINDS)
@click.argument("value")
@click.pass_context
def vocab_add_cmd(ctx: click.Context, kind: str, value: str):
    """Add a capability or domain."""
    portfolio: Path = ctx.obj["portfolio"]
    if not value.strip():
        console.print(f"[red]Error: {kind} must not be blank[/red]")
        sys.exit(1)
    try:
        store = _open_store(portfolio)
        if kind == "capability":
            store.add_capability(value)
        else:
            store.add_domain(value)
        save_portfolio(store, portfolio)
        console.print(f"[green]✓ Added {kind} {value.strip()}[/green]")

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@vocab_group.command("remove")
@click.argument("kind", type=VOCAB_KINDS)
@click.argument("value")
@click.pass_context
def vocab_remove_cmd(ctx: click.Context, kind: str, value: str):
    """Remove a capability or domain. Applications keep their reference."""
    portfolio: Path = ctx.obj["portfolio"]
    try:
        store = _open_store(portfolio)
        if kind == "capability":
            store.remove_capability(value)
        else:
            store.remove_domain(value)
        save_portfolio(store, portfolio)
        console.print(f"[green]✓ Removed {kind} {value}[/green]")

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


# =============================================================================
# Advisory and configuration
# =============================================================================


@main.command("ask")
@click.argument("question")
@click.option(
    "--api-key",
    type=str,
    envvar="PORTFOLIO_ADVISOR_API_KEY",
    help="API key for the advisory service (or set PORTFOLIO_ADVISOR_API_KEY)"
)
@click.pass_context
def ask_cmd(ctx: click.Context, question: str, api_key: Optional[str]):
    """Ask the AI advisor a question about the portfolio."""
    try:
        store = _open_store(ctx.obj["portfolio"])
        with console.status("Analyzing portfolio..."):
            answer = ask(store.snapshot(), question, api_key, settings=get_config().advisory)
        console.print(Panel(answer, title="Advisor"))

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@main.command("config-init")
@click.option(
    "--out", "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default="register-config.yaml",
    show_default=True,
    help="Where to write the default configuration"
)
def config_init_cmd(out: Path):
    """Write the default configuration to a YAML file."""
    try:
        write_default_config(out)
        console.print(f"[green]Default configuration written to {out}[/green]")

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
