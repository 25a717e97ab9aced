"""Click CLI entry point for profdump."""
from __future__ import annotations

import json
import logging
import os
import sys
from concurrent.futures import ThreadPoolExecutor

import click

from profdump import __version__
from profdump.config import DumpConfig, load_config, save_config
from profdump.engine import render_payload
from profdump.errors import ConfigError, DecodeError
from profdump.report import Report

logger = logging.getLogger(__name__)

EXIT_PROFILE_ERRORS = 1
EXIT_DECODE_ERROR = 2


@click.group()
@click.version_option(version=__version__, prog_name="profdump")
def cli() -> None:
    """profdump - resolve and render OTLP profiling records."""
    pass


@cli.command("render")
@click.argument("paths", nargs=-1, type=click.Path(allow_dash=True))
@click.option("--format", "output_format",
              type=click.Choice(["text", "terminal", "json", "events"]),
              default="text", help="Output format")
@click.option("--config", "config_path", type=click.Path(),
              help="JSON config file (default: $PROFDUMP_CONFIG)")
@click.option("--resource-attributes/--no-resource-attributes", default=None,
              help="Include resource attributes")
@click.option("--profile-attributes/--no-profile-attributes", default=None,
              help="Include profile attributes")
@click.option("--sample-attributes/--no-sample-attributes", default=None,
              help="Include sample attributes")
@click.option("--stack-frames/--no-stack-frames", default=None,
              help="Include resolved stack frames per sample")
@click.option("--frame-type", "frame_types", multiple=True,
              help="Only export frames of this type (repeatable)")
@click.option("--sample-type", "sample_types", multiple=True,
              help="Only render profiles of this sample type (repeatable)")
@click.option("--require-container-id/--allow-missing-container-id", default=None,
              help="Skip resources without a container.id attribute")
@click.option("--workers", type=click.IntRange(min=1), default=1,
              help="Render input files on this many threads")
@click.option("--fail-on-error", is_flag=True,
              help="Exit 1 if any profile could not be rendered")
@click.option("--verbose", is_flag=True, help="Debug logging on stderr")
def render_cmd(paths: tuple[str, ...], output_format: str, config_path: str | None,
               resource_attributes: bool | None, profile_attributes: bool | None,
               sample_attributes: bool | None, stack_frames: bool | None,
               frame_types: tuple[str, ...], sample_types: tuple[str, ...],
               require_container_id: bool | None, workers: int,
               fail_on_error: bool, verbose: bool) -> None:
    """Render OTLP/JSON profiles export requests (files, or - for stdin)."""
    _setup_logging(verbose)
    cfg = _effective_config(
        config_path,
        export_resource_attributes=resource_attributes,
        export_profile_attributes=profile_attributes,
        export_sample_attributes=sample_attributes,
        export_stack_frames=stack_frames,
        export_stack_frame_types=list(frame_types) or None,
        ignore_profiles_without_container_id=require_container_id,
        filter_sample_types=list(sample_types) or None,
    )

    if not paths:
        paths = ("-",)

    # Payloads are read up front so stdin is consumed on the main thread.
    payloads = [(path, _read_payload(path)) for path in paths]
    logger.debug("Rendering %d payload(s) on %d worker(s)", len(payloads), workers)

    def _job(item: tuple[str, bytes]) -> Report | DecodeError:
        path, payload = item
        try:
            return render_payload(payload, cfg, source=path)
        except DecodeError as e:
            return e

    if workers > 1 and len(payloads) > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(_job, payloads))
    else:
        results = [_job(item) for item in payloads]

    decode_failed = False
    profile_errors = False
    for (path, _), result in zip(payloads, results):
        if isinstance(result, DecodeError):
            decode_failed = True
            click.echo(f"profdump: {_display(path)}: {result}", err=True)
            continue
        profile_errors = profile_errors or result.has_errors()
        _emit(result, output_format)

    if decode_failed:
        sys.exit(EXIT_DECODE_ERROR)
    if fail_on_error and profile_errors:
        sys.exit(EXIT_PROFILE_ERRORS)


@cli.group()
def config() -> None:
    """Inspect and create profdump configuration files."""
    pass


@config.command("show")
@click.option("--config", "config_path", type=click.Path(),
              help="JSON config file (default: $PROFDUMP_CONFIG)")
def config_show(config_path: str | None) -> None:
    """Print the effective configuration as JSON."""
    cfg = _effective_config(config_path)
    click.echo(json.dumps(cfg.to_dict(), indent=2))


@config.command("init")
@click.argument("path", type=click.Path())
@click.option("--force", is_flag=True, help="Overwrite an existing file")
def config_init(path: str, force: bool) -> None:
    """Write a config file with the default settings."""
    if os.path.exists(path) and not force:
        click.echo(f"{path} already exists (use --force to overwrite)", err=True)
        sys.exit(1)
    try:
        save_config(path, DumpConfig())
    except OSError as e:
        click.echo(f"Failed to write config: {e}", err=True)
        sys.exit(1)
    click.echo(f"Wrote default config to {path}")


def _setup_logging(verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=log_level,
        format="%(name)s: %(message)s",
    )


def _effective_config(config_path: str | None, **overrides) -> DumpConfig:
    """Defaults < config file < command line flags. Exits on a bad config."""
    try:
        return load_config(config_path).merged(**overrides)
    except ConfigError as e:
        click.echo(f"profdump: {e}", err=True)
        sys.exit(EXIT_DECODE_ERROR)


def _read_payload(path: str) -> bytes:
    if path == "-":
        return click.get_binary_stream("stdin").read()
    try:
        with open(path, "rb") as f:
            return f.read()
    except OSError as e:
        click.echo(f"profdump: cannot read {path}: {e}", err=True)
        sys.exit(EXIT_DECODE_ERROR)


def _display(path: str) -> str:
    return "<stdin>" if path == "-" else path


def _emit(report: Report, output_format: str) -> None:
    if output_format == "terminal":
        from profdump.output.terminal import render_terminal
        render_terminal(report)
    elif output_format == "json":
        from profdump.output.json_report import format_json
        click.echo(format_json(report))
    elif output_format == "events":
        from profdump.output.json_report import format_events
        click.echo(format_events(report), nl=False)
    else:
        from profdump.output.text import format_text
        click.echo(format_text(report), nl=False)


def main() -> None:
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
