"""
KDI mapping CLI

Validate canonical vulnerability rule files and map scanner identifiers by hand.
"""

import json
import logging
import os
from enum import Enum
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version
from typing import NoReturn

import typer
from statsd import StatsClient
from typing_extensions import Annotated

from kdi.mapping import build_finding_mapper
from kdi.mapping import ConfigurationError
from kdi.mapping.store import RULE_FILE_HEADER
from kdi.mapping.store import RuleStore
from kdi.settings import populate_settings_from_options
from kdi.settings import settings
from kdi.stats import set_stats_client

logger = logging.getLogger(__name__)

app = typer.Typer(
    help="Canonical vulnerability mapping for KDI connectors",
    no_args_is_help=True,
)


class OutputFormat(str, Enum):
    """Output format options."""

    text = "text"
    json = "json"


def _fail(message: str) -> NoReturn:
    typer.secho(f"Error: {message}", fg=typer.colors.RED, err=True)
    raise typer.Exit(1)


def _version_callback(value: bool) -> None:
    """Print the toolkit version and the rule file header it reads."""
    if not value:
        return
    try:
        installed = version("kdi-toolkit")
    except PackageNotFoundError:
        installed = "dev"
    typer.echo(f"kdi-mapping, version {installed}")
    typer.echo(f"Rule file columns: {','.join(RULE_FILE_HEADER)}")
    raise typer.Exit()


def configure_stats() -> None:
    statsd_settings = settings.get("statsd", {})
    if not statsd_settings.get("enabled", False):
        return
    statsd_host = statsd_settings.get("host", "127.0.0.1")
    statsd_port = statsd_settings.get("port", 8125)
    statsd_prefix = statsd_settings.get("prefix", "")
    logger.debug(
        "statsd enabled. Sending metrics to server %s:%s with prefix '%s'.",
        statsd_host,
        statsd_port,
        statsd_prefix,
    )
    set_stats_client(
        StatsClient(host=statsd_host, port=statsd_port, prefix=statsd_prefix)
    )


def _load_store(mapping_file: str, strict: bool) -> RuleStore:
    if not os.path.isfile(mapping_file):
        _fail(f"Mapping file not found: {mapping_file}")
    try:
        return RuleStore.load(mapping_file, strict=strict)
    except ConfigurationError as e:
        _fail(str(e))


@app.callback()
def callback(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Enable verbose logging.")
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option("--quiet", "-q", help="Restrict logging to warnings and errors only."),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show the version and exit.",
        ),
    ] = False,
) -> None:
    if verbose:
        logging.getLogger("kdi").setLevel(logging.DEBUG)
    elif quiet:
        logging.getLogger("kdi").setLevel(logging.WARNING)
    else:
        logging.getLogger("kdi").setLevel(logging.INFO)
    configure_stats()


@app.command(name="validate")  # type: ignore[misc]
def validate_cmd(
    mapping_file: Annotated[str, typer.Argument(help="Path to the CSV rule file")],
    lenient: Annotated[
        bool,
        typer.Option(help="Skip invalid match rows instead of failing on the first one."),
    ] = False,
) -> None:
    """
    Load a rule file and report what it contains.

    \b
    Examples:
        kdi-mapping validate mappings.csv
        kdi-mapping validate --lenient mappings.csv
    """
    store = _load_store(mapping_file, strict=not lenient)
    result = store.load_result
    unreachable = [d.name for d in store.definitions if not d.matches]

    typer.secho(f"\n{mapping_file}\n", bold=True)
    typer.echo(f"  Definitions:    {result.definition_count}")
    typer.echo(f"  Match rows:     {result.match_count}")
    typer.echo(f"  Invalid rows:   {result.invalid_match_count}")
    if unreachable:
        typer.secho(f"  Without matches ({len(unreachable)}):", fg=typer.colors.YELLOW)
        for name in unreachable:
            typer.echo(f"    - {name}")
    if result.invalid_match_count:
        raise typer.Exit(1)


@app.command(name="sources")  # type: ignore[misc]
def sources_cmd(
    mapping_file: Annotated[str, typer.Argument(help="Path to the CSV rule file")],
) -> None:
    """
    Count the match rules of each scanner source.

    \b
    Examples:
        kdi-mapping sources mappings.csv
    """
    store = _load_store(mapping_file, strict=True)
    for source, patterns in sorted(store.matches_by_source().items()):
        typer.secho(f"{source}", fg=typer.colors.CYAN, nl=False)
        typer.echo(f" {len(patterns)}")


@app.command(name="lookup")  # type: ignore[misc]
def lookup_cmd(
    source: Annotated[str, typer.Argument(help="Scanner source, e.g. SecurityScorecard")],
    identifier: Annotated[str, typer.Argument(help="Scanner-specific identifier")],
    port: Annotated[
        int | None, typer.Option(help="Port the finding was reported on")
    ] = None,
    mapping_file: Annotated[
        str | None,
        typer.Option(help="Path to the CSV rule file. Defaults to the mapping settings."),
    ] = None,
    output_directory: Annotated[
        str | None,
        typer.Option(
            help="Directory for the missing mappings file. Defaults to the mapping settings."
        ),
    ] = None,
    output: Annotated[
        OutputFormat,
        typer.Option(help="Output format"),
    ] = OutputFormat.text,
) -> None:
    """
    Map one scanner identifier to its canonical vulnerability.

    \b
    Examples:
        kdi-mapping lookup SecurityScorecard upnp_accessible --mapping-file mappings.csv
        kdi-mapping lookup TestScanner http_accessible_server_detected --port 443
    """
    options: dict[str, str | None] = {"output_directory": output_directory}
    if mapping_file:
        input_directory, file_name = os.path.split(os.path.abspath(mapping_file))
        options.update({"input_directory": input_directory, "mapping_file": file_name})
    populate_settings_from_options("mapping", options)

    try:
        mapper = build_finding_mapper()
        if mapper is None:
            _fail("Mapping is not configured. Pass --mapping-file and --output-directory.")
        details = mapper.get_canonical_vuln_details(
            source, {"scanner_identifier": identifier}, port
        )
    except (ConfigurationError, FileNotFoundError) as e:
        _fail(str(e))

    if output == OutputFormat.json:
        typer.echo(json.dumps(details, indent=2))
        return
    for key, value in details.items():
        typer.echo(f"{key + ':':<20} {value}")


def main():
    """Entrypoint for kdi-mapping CLI."""
    logging.basicConfig(level=logging.INFO)
    logging.getLogger("statsd").setLevel(logging.WARNING)
    app()


if __name__ == "__main__":
    main()
