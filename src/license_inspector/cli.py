from __future__ import annotations

from pathlib import Path
from typing import List, NoReturn, Optional

import click

from .dependency_resolver import resolve_dependencies
from .errors import LicenseInspectorError
from .license_checker import check_licenses
from .license_fetcher import FetcherConfig, LicenseFetcher
from .log import configure_logging, get_logger
from .policy import DEFAULT_POLICY_PATH, load_policy, write_sample_policy
from .reporting import FORMATS, render_check, render_list, write_output
from .types import LicenseInfo
from .version import __version__

log = get_logger(__name__)

EXIT_VIOLATIONS = 1
EXIT_USAGE = 2


def build_fetcher() -> LicenseFetcher:
    return LicenseFetcher(FetcherConfig.from_env())


def _collect_licenses(lockfile: str, recursive: bool, jobs: int) -> List[LicenseInfo]:
    dependencies = resolve_dependencies(lockfile, recursive=recursive)
    infos = build_fetcher().fetch_all(dependencies, workers=jobs)
    log.debug("licenses_collected", count=len(infos), unknown=sum(1 for info in infos if not info.licenses))
    return infos


def _emit(content: str, output: Optional[str]) -> None:
    write_output(content, Path(output) if output else None)
    if not output:
        click.echo(content)


def _fail(exc: LicenseInspectorError) -> NoReturn:
    click.echo(str(exc), err=True)
    raise SystemExit(EXIT_USAGE)


format_option = click.option(
    "--format",
    "-f",
    "fmt",
    type=click.Choice(list(FORMATS), case_sensitive=False),
    default="table",
    show_default=True,
    help="Output format.",
)
recursive_option = click.option(
    "--recursive", "-r", is_flag=True, help="Include transitive dependencies."
)
output_option = click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, writable=True, path_type=str),
    help="Write output to a file instead of stdout.",
)
lockfile_option = click.option(
    "--gemfile-lock",
    "lockfile",
    default="Gemfile.lock",
    show_default=True,
    help="Path to Gemfile.lock.",
)
jobs_option = click.option(
    "--jobs",
    "-j",
    type=click.IntRange(min=1),
    default=1,
    show_default=True,
    help="Number of gems to look up concurrently.",
)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging on stderr.")
@click.option("--quiet", "-q", is_flag=True, help="Only log warnings and errors.")
@click.option("--json-log", is_flag=True, help="Emit log lines as JSON.")
def main(verbose: bool, quiet: bool, json_log: bool) -> None:
    """Inspect and enforce the licenses of a Bundler project's gems."""
    configure_logging(verbose=verbose, quiet=quiet, json_log=json_log)


@main.command("list")
@format_option
@recursive_option
@output_option
@lockfile_option
@jobs_option
def list_licenses(fmt: str, recursive: bool, output: Optional[str], lockfile: str, jobs: int) -> None:
    """Show dependency license information."""
    try:
        infos = _collect_licenses(lockfile, recursive, jobs)
    except LicenseInspectorError as exc:
        _fail(exc)

    _emit(render_list(infos, fmt), output)


@main.command()
@click.option(
    "--config",
    "-c",
    "config_path",
    default=DEFAULT_POLICY_PATH,
    show_default=True,
    help="Path to the license policy file.",
)
@format_option
@recursive_option
@output_option
@lockfile_option
@jobs_option
def check(
    config_path: str, fmt: str, recursive: bool, output: Optional[str], lockfile: str, jobs: int
) -> None:
    """Validate licenses against the policy file."""
    try:
        policy = load_policy(config_path)
        infos = _collect_licenses(lockfile, recursive, jobs)
    except LicenseInspectorError as exc:
        _fail(exc)

    result = check_licenses(policy, infos)
    _emit(render_check(result, fmt), output)

    if not result.ok:
        raise SystemExit(EXIT_VIOLATIONS)


@main.command()
@click.option("--force", is_flag=True, help="Overwrite an existing policy file without asking.")
def init(force: bool) -> None:
    """Create a sample .license-inspector.yml."""
    path = Path(DEFAULT_POLICY_PATH)
    if path.exists() and not force:
        if not click.confirm(f"{path} already exists. Overwrite?", default=False):
            click.echo("Aborted")
            return

    write_sample_policy(path)
    click.echo(f"Created {path}")


@main.command()
def version() -> None:
    """Show the current version."""
    click.echo(f"license-inspector {__version__}")


if __name__ == "__main__":
    main()
