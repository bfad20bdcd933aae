"""CLI entry point using Click."""

from __future__ import annotations

import logging
from datetime import date, timedelta
from pathlib import Path

import click


class _DefaultGroup(click.Group):
    """Insert 'run' when the first arg is not a registered subcommand."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.no_args_is_help = False  # bare `tui-chantier` opens the current folder

    def invoke(self, ctx):
        if not ctx._protected_args and not ctx.args:
            ctx._protected_args = ["run"]
        return super().invoke(ctx)

    def resolve_command(self, ctx, args):
        cmd_name = args[0] if args else None
        if cmd_name and cmd_name in self.commands:
            return super().resolve_command(ctx, args)
        return super().resolve_command(ctx, ["run"] + list(args))


def _configure_logging(log_file: str | None, verbose: bool) -> None:
    # Textual owns the terminal, so records only ever go to a file.
    if log_file is None:
        return
    logging.basicConfig(
        filename=log_file,
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _ensure_project_dir(path: str) -> Path:
    project_dir = Path(path).resolve()
    if not project_dir.exists():
        if click.confirm(f"'{project_dir}' does not exist. Create it?"):
            project_dir.mkdir(parents=True, exist_ok=True)
            click.echo(f"Created folder {project_dir}")
        else:
            raise SystemExit(0)
    elif not project_dir.is_dir():
        click.echo(f"Error: '{project_dir}' is not a directory.", err=True)
        raise SystemExit(1)
    return project_dir


@click.group(cls=_DefaultGroup)
@click.option("--no-color", is_flag=True, help="Disable color output")
@click.option("--log-file", type=click.Path(dir_okay=False), default=None, help="Write logs to this file")
@click.option("-v", "--verbose", is_flag=True, help="Log debug messages (with --log-file)")
@click.version_option(package_name="tui-chantier")
@click.pass_context
def main(ctx, no_color: bool, log_file: str | None, verbose: bool) -> None:
    """TUI Chantier - Terminal construction schedule planner."""
    ctx.ensure_object(dict)
    ctx.obj["no_color"] = no_color
    _configure_logging(log_file, verbose)


@main.command()
@click.argument("path", default=".", type=click.Path())
@click.pass_context
def run(ctx, path: str) -> None:
    """Open the schedule of the project in PATH (lots.yaml)."""
    from tui_chantier.app import ChantierApp

    project_dir = _ensure_project_dir(path)
    app = ChantierApp(project_dir=project_dir, no_color=ctx.obj["no_color"])
    app.run()


def _sample_store_data(today: date) -> dict:
    """A small site with dated, undated and finished lots."""
    monday = today - timedelta(days=today.weekday())

    def lot(index: int, name: str, start: int | None, days: int, status: str, company: str) -> dict:
        return {
            "id": f"lot-{index}",
            "name": name,
            "start_date": (monday + timedelta(days=start)).isoformat() if start is not None else None,
            "end_date": (monday + timedelta(days=start + days - 1)).isoformat() if start is not None else None,
            "status": status,
            "sort_order": index,
            "company_id": company,
        }

    return {
        "companies": [
            {"id": "co-1", "name": "Maçonnerie Martin"},
            {"id": "co-2", "name": "Électricité Bernard"},
            {"id": "co-3", "name": "Plomberie Petit"},
        ],
        "lots": [
            lot(1, "Terrassement", -21, 10, "completed", "co-1"),
            lot(2, "Gros œuvre", -10, 24, "in_progress", "co-1"),
            lot(3, "Électricité", 14, 15, "pending", "co-2"),
            lot(4, "Plomberie", 14, 12, "pending", "co-3"),
            lot(5, "Peinture", None, 0, "pending", "co-1"),
        ],
    }


@main.command("init")
@click.argument("path", default=".", type=click.Path())
@click.option("--name", prompt="Project name", default="My Site", help="Project name")
def init_cmd(path: str, name: str) -> None:
    """Initialize a new project (config.toml + sample lots.yaml)."""
    import yaml

    from tui_chantier.config import save_config
    from tui_chantier.models import ProjectConfig
    from tui_chantier.store import LOTS_FILE

    project_dir = Path(path).resolve()
    lots_path = project_dir / LOTS_FILE
    if lots_path.exists():
        click.echo(f"Lots file already exists: {lots_path}", err=True)
        raise SystemExit(1)

    project_dir.mkdir(parents=True, exist_ok=True)

    save_config(project_dir, ProjectConfig(name=name))
    click.echo(f"Created {project_dir / '.tui-chantier' / 'config.toml'}")

    with open(lots_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(_sample_store_data(date.today()), f, allow_unicode=True, sort_keys=False)
    click.echo(f"Created {lots_path}")

    click.echo(f"\nProject initialized at {project_dir}")
    click.echo("Run 'tui-chantier' to open the schedule.")


@main.command("init-theme")
@click.argument("path", default=".", type=click.Path())
def init_theme_cmd(path: str) -> None:
    """Copy default theme to .tui-chantier/theme.yaml for customization."""
    from tui_chantier.theme import init_theme

    project_dir = _ensure_project_dir(path)
    try:
        dest = init_theme(project_dir)
    except FileExistsError as e:
        click.echo(f"Already exists: {e}", err=True)
        raise SystemExit(1)
    click.echo(f"Created {dest}")


@main.command("stats")
@click.argument("path", default=".", type=click.Path(exists=True, file_okay=False))
def stats_cmd(path: str) -> None:
    """Print lot counts and the delayed lots of a project."""
    from rich.console import Console
    from rich.markup import escape
    from rich.table import Table

    from tui_chantier.config import load_config
    from tui_chantier.models import STATUS_LABELS, format_date
    from tui_chantier.schedule import compute_stats, is_delayed, sort_lots
    from tui_chantier.store import LotStoreError, load_store

    project_dir = Path(path).resolve()
    config = load_config(project_dir)
    try:
        store = load_store(project_dir)
    except LotStoreError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    lots = store.snapshot()
    today = date.today()
    stats = compute_stats(lots, today)
    console = Console()
    console.print(f"[bold]{escape(config.name or project_dir.name)}[/bold]")
    console.print(stats.summary())
    if stats.without_dates:
        console.print(f"{stats.without_dates} without dates")

    table = Table("Status", "Lots")
    for status, count in stats.by_status.items():
        table.add_row(STATUS_LABELS[status], str(count))
    console.print(table)

    delayed = [lot for lot in sort_lots(lots) if is_delayed(lot, today)]
    if delayed:
        late = Table("Delayed lot", "End", title="Delayed", title_style="bold red")
        for lot in delayed:
            late.add_row(lot.name, format_date(lot.end_date, config.date_format))
        console.print(late)
