"""Saleor Configurator CLI.

Usage:
    saleor-configurator diff                   # Show what a deploy would change
    saleor-configurator diff --format json     # Machine-readable diff
    saleor-configurator deploy                 # Preview, confirm, deploy
    saleor-configurator deploy --ci            # Deploy without confirmation
    saleor-configurator deploy --plan          # Preview only
    saleor-configurator pull --force           # Overwrite config.yml with remote state

Connection settings come from ``--url``/``--token`` or the ``SALEOR_URL`` and
``SALEOR_TOKEN`` environment variables.
"""

from __future__ import annotations

import asyncio
import json
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any, NoReturn

import click

from .config import Settings
from .configurator import ConfigFileExistsError, SaleorConfigurator
from .diff import (
    NO_CHANGES_MESSAGE,
    SECTION_ENTITY_TYPES,
    DiffOperation,
    DiffSummary,
    diff_summary_to_dict,
    format_diff_summary,
)
from .errors import ExitCode, classify_error, render_user_message
from .main import json_logging_requested, log_level, setup_logging
from .report import DeploymentSummaryReport
from .results import DeploymentResultFormatter
from .services import build_services

VERSION = "0.1.0"
PROG_NAME = "saleor-configurator"

SECTIONS_HELP = f"Comma-separated sections: {', '.join(SECTION_ENTITY_TYPES)}"


def split_sections(value: str | None) -> list[str]:
    """Parse a comma-separated ``--include``/``--exclude`` value."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def fail(error: BaseException, operation: str, verbose: bool) -> NoReturn:
    """Render ``error`` for the user and exit with its code."""
    classified = classify_error(error, operation)
    click.echo(render_user_message(classified, verbose=verbose), err=True)
    sys.exit(classified.exit_code)


def _make_configurator(obj: dict[str, Any], operation: str) -> tuple[SaleorConfigurator, Settings]:
    try:
        settings = Settings.from_env(**obj["overrides"])
        services = build_services(settings)
    except Exception as e:
        fail(e, operation, obj["verbose"])
    return SaleorConfigurator(services, settings), settings


def _sections(include: str | None, exclude: str | None) -> tuple[list[str], list[str]]:
    included, excluded = split_sections(include), split_sections(exclude)
    unknown = [s for s in included + excluded if s not in SECTION_ENTITY_TYPES]
    if unknown:
        raise click.BadParameter(
            f"Unknown section(s): {', '.join(unknown)}. {SECTIONS_HELP}",
            param_hint="--include/--exclude",
        )
    return included, excluded


# =============================================================================
# Main CLI Group
# =============================================================================


@click.group()
@click.version_option(version=VERSION, prog_name=PROG_NAME)
@click.option("--url", envvar="SALEOR_URL", help="Saleor instance URL.")
@click.option("--token", envvar="SALEOR_TOKEN", help="Saleor app or staff token.")
@click.option(
    "--config",
    "config_path",
    envvar="SALEOR_CONFIG",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Local configuration file (default: config.yml).",
)
@click.option("--quiet", is_flag=True, help="Only log errors.")
@click.option("--verbose", is_flag=True, help="Debug logging and full error details.")
@click.pass_context
def cli(
    ctx: click.Context,
    url: str | None,
    token: str | None,
    config_path: Path | None,
    quiet: bool,
    verbose: bool,
) -> None:
    """Saleor Configurator.

    Keep a Saleor instance in sync with a declarative YAML file.

    \b
    Quick Start:
        saleor-configurator pull           # Start from the current instance
        saleor-configurator diff           # Review local edits
        saleor-configurator deploy         # Apply them
    """
    setup_logging(log_level(quiet, verbose), json_output=json_logging_requested())
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["overrides"] = {
        "url": url,
        "token": token,
        "config_path": config_path,
        "quiet": quiet,
        "verbose": verbose,
    }


# =============================================================================
# Diff
# =============================================================================


@cli.command()
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    show_default=True,
    help="Output format.",
)
@click.option("--include", help=f"Only these sections. {SECTIONS_HELP}")
@click.option("--exclude", help=f"Skip these sections. {SECTIONS_HELP}")
@click.pass_obj
def diff(obj: dict[str, Any], output_format: str, include: str | None, exclude: str | None) -> None:
    """Show differences between the local file and the instance."""
    included, excluded = _sections(include, exclude)
    configurator, settings = _make_configurator(obj, "diff")

    try:
        summary = asyncio.run(configurator.diff(included, excluded))
    except Exception as e:
        fail(e, "diff", obj["verbose"])

    if output_format == "json":
        document = diff_summary_to_dict(summary, settings.url, str(settings.config_path))
        click.echo(json.dumps(document, indent=2, ensure_ascii=False))
    else:
        click.echo(format_diff_summary(summary))


# =============================================================================
# Deploy
# =============================================================================


def _deletion_block_message(summary: DiffSummary) -> str:
    deletions = [r for r in summary.results if r.operation == DiffOperation.DELETE]
    lines = [
        f"🚫 Deployment blocked: {len(deletions)} deletion(s) detected "
        "and --fail-on-delete is set",
        "",
    ]
    lines.extend(f"  • {r.entity_type}: {r.entity_name}" for r in deletions)
    return "\n".join(lines)


async def _run_deploy(
    configurator: SaleorConfigurator,
    included: Sequence[str],
    excluded: Sequence[str],
    ci: bool,
    plan: bool,
    json_output: bool,
    fail_on_delete: bool,
    report_path: Path | None,
) -> int:
    summary = await configurator.diff(included, excluded)

    if not json_output:
        click.echo(format_diff_summary(summary))

    if fail_on_delete and summary.deletes > 0:
        click.echo(_deletion_block_message(summary), err=True)
        return ExitCode.DELETION_BLOCKED

    if plan:
        if json_output:
            click.echo(json.dumps(diff_summary_to_dict(summary), indent=2, ensure_ascii=False))
        return ExitCode.SUCCESS

    if not summary.has_changes:
        if json_output:
            click.echo(json.dumps({"status": "success", "message": NO_CHANGES_MESSAGE}))
        return ExitCode.SUCCESS

    if not ci and not click.confirm("\nDo you want to apply these changes?", default=False):
        click.echo("Deployment cancelled.")
        return ExitCode.SUCCESS

    outcome = await configurator.deploy(summary)
    path = configurator.save_report(outcome, summary, report_path)
    cleanup = await configurator.cleanup_suggestions(summary)

    if json_output:
        result = outcome.result
        click.echo(
            json.dumps(
                {
                    "status": result.overall_status.value,
                    "exitCode": outcome.exit_code,
                    "summary": {
                        "totalStages": len(result.stages),
                        "completedStages": result.summary.completed_stages,
                        "failedStages": result.summary.failed_stages,
                        "skippedStages": result.summary.skipped_stages,
                        "totalEntities": result.summary.total_entities,
                        "successfulEntities": result.summary.successful_entities,
                        "failedEntities": result.summary.failed_entities,
                    },
                    "report": str(path),
                },
                indent=2,
            )
        )
        return outcome.exit_code

    click.echo(DeploymentResultFormatter().format(outcome.result))
    click.echo(DeploymentSummaryReport(outcome.metrics, summary).render())
    if cleanup:
        click.echo("\n🧹 Cleanup suggestions:")
        for suggestion in cleanup:
            click.echo(f"  • {suggestion.message}")
    click.echo(f"\n📄 Deployment report saved to {path}")
    return outcome.exit_code


@cli.command()
@click.option("--ci", is_flag=True, help="Skip the confirmation prompt.")
@click.option("--plan", is_flag=True, help="Show the changes without deploying.")
@click.option("--json", "json_output", is_flag=True, help="Print a JSON result instead of text.")
@click.option(
    "--fail-on-delete",
    is_flag=True,
    help=f"Exit with code {int(ExitCode.DELETION_BLOCKED)} if the deploy would delete anything.",
)
@click.option(
    "--report-path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the deployment report here instead of the managed reports directory.",
)
@click.option("--include", help=f"Only these sections. {SECTIONS_HELP}")
@click.option("--exclude", help=f"Skip these sections. {SECTIONS_HELP}")
@click.pass_obj
def deploy(
    obj: dict[str, Any],
    ci: bool,
    plan: bool,
    json_output: bool,
    fail_on_delete: bool,
    report_path: Path | None,
    include: str | None,
    exclude: str | None,
) -> None:
    """Deploy the local configuration to the instance."""
    included, excluded = _sections(include, exclude)
    configurator, _ = _make_configurator(obj, "deployment")

    try:
        exit_code = asyncio.run(
            _run_deploy(
                configurator,
                included,
                excluded,
                ci,
                plan,
                json_output,
                fail_on_delete,
                report_path,
            )
        )
    except click.Abort:
        raise
    except Exception as e:
        fail(e, "deployment", obj["verbose"])

    sys.exit(int(exit_code))


# =============================================================================
# Pull
# =============================================================================


@cli.command()
@click.option("--force", is_flag=True, help="Overwrite an existing configuration file.")
@click.pass_obj
def pull(obj: dict[str, Any], force: bool) -> None:
    """Write the instance's current configuration to the local file."""
    configurator, settings = _make_configurator(obj, "pull")

    try:
        asyncio.run(configurator.pull(force=force))
    except ConfigFileExistsError as e:
        raise click.ClickException(str(e)) from e
    except Exception as e:
        fail(e, "pull", obj["verbose"])

    click.secho(f"✓ Configuration written to {settings.config_path}", fg="green")


def main() -> None:
    """Entry point for the ``saleor-configurator`` console script."""
    cli(obj={})


if __name__ == "__main__":
    main()
