"""Main CLI entry point for the Coding to GitHub migration tool."""

import asyncio
import signal
import sys
from pathlib import Path
from typing import Awaitable, Callable, List, Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
)
from rich.table import Table

from .. import __version__
from ..config.config import Config
from ..exceptions import ConfigurationInvalid
from ..migration.engine import MigrationEngine
from ..migration.result import MigrationResult
from ..models.repository import Repository, TargetRepository
from ..utils.dates import format_date
from ..utils.logging import setup_logging

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name='coding-migrate')
@click.option(
    '--config',
    '-c',
    type=click.Path(exists=True),
    help='Path to configuration file',
)
@click.option(
    '--verbose',
    '-v',
    is_flag=True,
    help='Enable verbose logging',
)
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], verbose: bool) -> None:
    """Coding Migration Tool - Migrate Coding repositories to a GitHub organization."""
    ctx.ensure_object(dict)

    if config:
        ctx.obj['config_path'] = config
    ctx.obj['verbose'] = verbose

    # Replaced by the configured sinks once a config is loaded
    setup_logging('DEBUG' if verbose else 'WARNING')


@cli.command()
@click.option(
    '--output',
    '-o',
    default='config.yaml',
    help='Output configuration file path',
)
@click.option('--force', is_flag=True, help='Overwrite an existing file')
def init(output: str, force: bool) -> None:
    """Write a configuration template."""
    console.print(
        Panel.fit(
            '[bold green]Coding Migration Tool[/bold green]\n'
            'Initializing configuration...',
            border_style='green',
        )
    )

    if Path(output).exists() and not force:
        console.print(f'[red]✗[/red] {output} already exists, use --force to overwrite it')
        sys.exit(1)

    try:
        Config.create_template(output)
    except OSError as e:
        console.print(f'[red]✗[/red] Failed to create configuration: {e}')
        sys.exit(1)

    console.print(f'[green]✓[/green] Configuration template created at: {output}')
    console.print(
        f'[yellow]Please edit {output} with your Coding and GitHub details[/yellow]'
    )


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the effective configuration (tokens masked)."""
    console.print(
        Panel.fit(
            '[bold magenta]Coding Migration Tool[/bold magenta]\nConfiguration Status',
            border_style='magenta',
        )
    )

    config = _load_config_or_exit(ctx)
    masked = config.masked()

    table = Table(title='Migration Configuration')
    table.add_column('Setting', style='cyan')
    table.add_column('Value', style='green')

    for section in ('source', 'destination', 'migration', 'git', 'logging'):
        for key, value in masked[section].items():
            table.add_row(f'{section}.{key}', _format_value(value))
    table.add_row(
        'exclude_repositories',
        ', '.join(masked['exclude_repositories']) or '-',
    )

    console.print(table)


@cli.command()
@click.pass_context
def validate(ctx: click.Context) -> None:
    """Validate configuration and connectivity to Coding and GitHub."""
    console.print(
        Panel.fit(
            '[bold cyan]Coding Migration Tool[/bold cyan]\nValidating configuration...',
            border_style='cyan',
        )
    )

    config = _load_config_or_exit(ctx)
    console.print('[green]✓[/green] Configuration is valid')

    try:
        engine = MigrationEngine(config)
        try:
            results = engine.test_connectivity()
        finally:
            engine.close()
    except Exception as e:
        console.print(f'[red]✗[/red] Validation failed: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)

    failed = False
    for platform, ok in results.items():
        if ok:
            console.print(f'[green]✓[/green] Connected to {platform.title()}')
        else:
            failed = True
            console.print(f'[red]✗[/red] Cannot connect to {platform.title()}')

    if failed:
        sys.exit(1)


@cli.command(name='list')
@click.pass_context
def list_repositories(ctx: click.Context) -> None:
    """List source repositories and their GitHub target names."""
    config = _load_config_or_exit(ctx)

    try:
        engine = MigrationEngine(config)
        try:
            repositories = engine.list_repositories()
            plan = engine.plan(repositories)
        finally:
            engine.close()
    except Exception as e:
        console.print(f'[red]✗[/red] Failed to list repositories: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)

    table = Table(title=f'Coding Repositories ({len(plan)})')
    table.add_column('Repository', style='cyan')
    table.add_column('Target', style='green')
    table.add_column('Visibility')
    table.add_column('Created')
    table.add_column('Last Push')
    table.add_column('Status')

    for item in plan:
        repository = item.repository
        table.add_row(
            repository.full_name,
            f'{config.destination.organization}/{item.target_name}',
            'public' if repository.is_shared else 'private',
            format_date(repository.created_at),
            format_date(repository.updated_at),
            '[yellow]excluded[/yellow]' if item.excluded else 'pending',
        )

    console.print(table)


@cli.command()
@click.option(
    '--dry-run',
    is_flag=True,
    help='Resolve targets only; create, clone and push nothing',
)
@click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation')
@click.pass_context
def migrate(ctx: click.Context, dry_run: bool, yes: bool) -> None:
    """Migrate all Coding repositories to GitHub."""
    console.print(
        Panel.fit(
            '[bold blue]Coding Migration Tool[/bold blue]\n'
            'Starting migration process...',
            border_style='blue',
        )
    )

    config = _load_config_or_exit(ctx)
    dry_run = dry_run or config.migration.dry_run
    if dry_run:
        console.print('[yellow]Running in dry-run mode - no changes will be made[/yellow]')

    try:
        engine = MigrationEngine(config)
    except ConfigurationInvalid as e:
        _print_config_errors(e)
        sys.exit(1)

    try:
        repositories = engine.list_repositories()
        plan = engine.plan(repositories)
        selected = sum(1 for item in plan if not item.excluded)

        console.print(
            f'Found [bold]{len(plan)}[/bold] repositories, '
            f'[bold]{selected}[/bold] to migrate into '
            f'[bold]{config.destination.organization}[/bold] '
            f'({len(plan) - selected} excluded)'
        )
        if selected == 0:
            console.print('[yellow]Nothing to migrate[/yellow]')
            return

        if not dry_run and not yes and not click.confirm('Proceed with the migration?'):
            console.print('[yellow]Migration aborted[/yellow]')
            return

        result = asyncio.run(_run_migration(engine, repositories, selected, dry_run))
    except ConfigurationInvalid as e:
        _print_config_errors(e)
        sys.exit(1)
    except Exception as e:
        console.print(f'[red]✗[/red] Migration failed: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)
    finally:
        engine.close()

    _display_summary(result, 'Migration', 'Migrated')
    if not result.is_success():
        sys.exit(1)


@cli.command()
@click.option(
    '--output-dir',
    '-o',
    default='./downloads',
    show_default=True,
    help='Directory receiving <project>/<repository> clones',
)
@click.option(
    '--exclude-empty',
    is_flag=True,
    help='Remove and skip repositories without commits or files',
)
@click.option(
    '--concurrent',
    '-j',
    type=click.IntRange(1, 10),
    default=None,
    help='Repositories cloned at once [default: migration.concurrent_limit]',
)
@click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation')
@click.pass_context
def download(
    ctx: click.Context,
    output_dir: str,
    exclude_empty: bool,
    concurrent: Optional[int],
    yes: bool,
) -> None:
    """Clone all Coding repositories into a local directory tree."""
    console.print(
        Panel.fit(
            '[bold blue]Coding Migration Tool[/bold blue]\n'
            'Downloading repositories...',
            border_style='blue',
        )
    )

    config = _load_config_or_exit(ctx)

    try:
        engine = MigrationEngine(config)
    except ConfigurationInvalid as e:
        _print_config_errors(e)
        sys.exit(1)

    try:
        repositories = engine.list_repositories()
        plan = engine.plan(repositories)
        selected = [item.repository for item in plan if not item.excluded]

        console.print(
            f'Found [bold]{len(plan)}[/bold] repositories, '
            f'[bold]{len(selected)}[/bold] to download into [bold]{output_dir}[/bold] '
            f'({len(plan) - len(selected)} excluded)'
        )
        if not selected:
            console.print('[yellow]Nothing to download[/yellow]')
            return

        _display_download_plan(selected, output_dir)

        if not yes and not click.confirm('Start the download?'):
            console.print('[yellow]Download aborted[/yellow]')
            return

        result = asyncio.run(
            _run_with_progress(
                'Download',
                len(selected),
                lambda done, steps, cancel: engine.download(
                    output_dir,
                    exclude_empty=exclude_empty,
                    concurrency=concurrent,
                    repositories=repositories,
                    progress=done,
                    step_progress=steps,
                    cancel_event=cancel,
                ),
            )
        )
    except ConfigurationInvalid as e:
        _print_config_errors(e)
        sys.exit(1)
    except Exception as e:
        console.print(f'[red]✗[/red] Download failed: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)
    finally:
        engine.close()

    _display_summary(result, 'Download', 'Downloaded')
    if not result.is_success():
        sys.exit(1)


@cli.command(name='delete-repos')
@click.option('--org', help='Organization to empty [default: destination.organization]')
@click.option('--dry-run', is_flag=True, help='Only list the repositories that would be deleted')
@click.option('--force', '-f', is_flag=True, help='Skip both confirmation prompts')
@click.pass_context
def delete_repos(ctx: click.Context, org: Optional[str], dry_run: bool, force: bool) -> None:
    """Delete every repository of a GitHub organization.

    Meant for cleaning up after a failed trial migration. The GitHub token
    needs the delete_repo scope. Deleted repositories cannot be restored.
    """
    console.print(
        Panel.fit(
            '[bold red]Coding Migration Tool[/bold red]\n'
            'Deleting GitHub repositories',
            border_style='red',
        )
    )

    config = _load_config_or_exit(ctx)
    org = org or config.destination.organization

    try:
        engine = MigrationEngine(config)
    except ConfigurationInvalid as e:
        _print_config_errors(e)
        sys.exit(1)

    try:
        repositories = engine.list_target_repositories(org)
        if not repositories:
            console.print(f'[yellow]No repositories found in {org}[/yellow]')
            return

        _display_target_repositories(org, repositories)

        if dry_run:
            console.print('[yellow]Dry run - nothing was deleted[/yellow]')
            return

        if not force and not _confirm_deletion(org, len(repositories)):
            console.print('[yellow]Deletion aborted[/yellow]')
            return

        def on_deleted(full_name: str, result: MigrationResult) -> None:
            if full_name in result.success_items:
                console.print(f'  [green]✓[/green] {full_name}')
            else:
                console.print(f'  [red]✗[/red] {full_name}')

        result = engine.delete_target_repositories(
            [repository.name for repository in repositories], org, progress=on_deleted
        )
    except Exception as e:
        console.print(f'[red]✗[/red] Deletion failed: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)
    finally:
        engine.close()

    table = Table(title='Deletion Summary')
    table.add_column('Deleted', style='green')
    table.add_column('Failed', style='red')
    table.add_column('Total', style='blue')
    table.add_row(str(result.success_count), str(result.error_count), str(result.total_count))
    console.print(table)

    if result.errors:
        console.print(f'\n[red]Errors ({result.error_count}):[/red]')
        for error in result.errors:
            console.print(f'  • {error}')
        sys.exit(1)


class _ProgressMessages:
    """Shows per-step messages as the progress bar description."""

    def __init__(self, progress: Progress, task_id):
        self.progress = progress
        self.task_id = task_id

    def notify(self, message: str, unit_label: str) -> None:
        self.progress.update(self.task_id, description=f'{unit_label}: {message}')


def _run_migration(
    engine: MigrationEngine,
    repositories: List[Repository],
    total: int,
    dry_run: bool,
) -> Awaitable[MigrationResult]:
    return _run_with_progress(
        'Dry run' if dry_run else 'Migration',
        total,
        lambda done, steps, cancel: engine.migrate(
            repositories,
            progress=done,
            step_progress=steps,
            cancel_event=cancel,
            dry_run=dry_run,
        ),
    )


async def _run_with_progress(
    operation: str,
    total: int,
    start: Callable[..., Awaitable[MigrationResult]],
) -> MigrationResult:
    """Run ``start(on_unit_done, step_sink, cancel_event)`` under a progress bar.

    Ctrl-C sets the cancel event, which stops the batch between repositories.
    """
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
        handles_sigint = True
    except (NotImplementedError, RuntimeError):
        handles_sigint = False

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn('[progress.description]{task.description}'),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
        ) as progress:
            task = progress.add_task(f'[blue]{operation} starting...', total=total)

            def on_unit_done(label: str, result: MigrationResult) -> None:
                progress.update(
                    task,
                    completed=result.total_count,
                    description=f'[blue]{operation}: {label} done',
                )

            result = await start(on_unit_done, _ProgressMessages(progress, task), cancel_event)

            colour = 'green' if result.is_success() else 'red'
            progress.update(task, description=f'[{colour}]{operation} finished')
    finally:
        if handles_sigint:
            loop.remove_signal_handler(signal.SIGINT)

    return result


def _display_summary(result: MigrationResult, operation: str, done_label: str) -> None:
    """Print counts, then every error and skip reason."""
    details = result.details
    skipped = details.get('skipped', [])
    excluded = details.get('excluded', [])
    cancelled = details.get('cancelled', [])

    table = Table(title=f'{operation} Summary')
    table.add_column('Processed', style='blue')
    table.add_column(done_label, style='green')
    table.add_column('Skipped', style='yellow')
    table.add_column('Failed', style='red')
    table.add_column('Excluded')
    table.add_column('Cancelled')
    table.add_row(
        str(result.total_count),
        str(result.success_count - len(skipped)),
        str(len(skipped)),
        str(result.error_count),
        str(len(excluded)),
        str(len(cancelled)),
    )
    console.print(table)

    if skipped:
        console.print(f'\n[yellow]Skipped ({len(skipped)}):[/yellow]')
        for line in skipped:
            console.print(f'  • {line}')

    if cancelled:
        console.print(f'\n[yellow]Not started ({len(cancelled)}):[/yellow]')
        for name in cancelled:
            console.print(f'  • {name}')

    if result.errors:
        console.print(f'\n[red]Errors ({result.error_count}):[/red]')
        for error in result.errors:
            console.print(f'  • {error}')

    if result.is_success():
        console.print(f'\n[green]✓[/green] {operation} completed successfully')
    else:
        console.print(f'\n[red]✗[/red] {operation} completed with errors')


def _display_download_plan(repositories: List[Repository], output_dir: str) -> None:
    table = Table(title='Download Plan')
    table.add_column('Repository', style='cyan')
    table.add_column('Local Path', style='green')
    table.add_column('Description')
    table.add_column('Created')
    table.add_column('Last Push')

    for repository in repositories:
        table.add_row(
            repository.full_name,
            str(Path(output_dir) / repository.project_name / repository.name),
            repository.description or '-',
            format_date(repository.created_at),
            format_date(repository.updated_at),
        )

    console.print(table)


def _display_target_repositories(org: str, repositories: List[TargetRepository]) -> None:
    table = Table(title=f'Repositories in {org} ({len(repositories)})')
    table.add_column('Name', style='cyan')
    table.add_column('Description')
    table.add_column('Created')
    table.add_column('Updated')
    table.add_column('Language')
    table.add_column('Size', justify='right')

    for repository in repositories:
        table.add_row(
            repository.name,
            repository.description or '-',
            format_date(repository.created_at),
            format_date(repository.updated_at),
            repository.language or '-',
            _format_size(repository.size),
        )

    console.print(table)


def _confirm_deletion(org: str, count: int) -> bool:
    """Ask for the organization name, then for a yes/no answer."""
    console.print(
        f'[bold red]About to delete {count} repositories from {org}. '
        f'This cannot be undone.[/bold red]'
    )
    typed = click.prompt(f'Type the organization name "{org}" to confirm', default='', show_default=False)
    if typed != org:
        console.print('[red]✗[/red] Organization name does not match')
        return False
    return click.confirm(f'Delete {count} repositories from {org}?', default=False)


def _load_config_or_exit(ctx: click.Context) -> Config:
    """Load configuration and set up logging from it; exit 1 on failure."""
    try:
        config = Config.load(ctx.obj.get('config_path'))
    except ConfigurationInvalid as e:
        _print_config_errors(e)
        sys.exit(1)
    except FileNotFoundError as e:
        console.print(f'[red]✗[/red] {e}')
        console.print('Run "coding-migrate init" to create a configuration file.')
        sys.exit(1)

    verbose = ctx.obj.get('verbose', False)
    setup_logging(
        level='DEBUG' if verbose else config.logging.level,
        log_file=config.logging.file,
        log_format=config.logging.format,
    )
    return config


def _print_config_errors(error: ConfigurationInvalid) -> None:
    console.print('[red]✗[/red] Configuration is invalid:')
    for message in error.errors:
        console.print(f'  • {message}')


def _format_value(value) -> str:
    if isinstance(value, bool):
        return '✓' if value else '✗'
    if value is None or value == '':
        return '-'
    return str(value)


def _format_size(size_kb: int) -> str:
    """GitHub reports repository sizes in kilobytes."""
    if size_kb < 1024:
        return f'{size_kb} KB'
    if size_kb < 1024 * 1024:
        return f'{size_kb / 1024:.2f} MB'
    return f'{size_kb / (1024 * 1024):.2f} GB'


def main() -> None:
    """Main entry point for the CLI application."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print('\n[red]Interrupted by user[/red]')
        sys.exit(1)


if __name__ == '__main__':
    main()
