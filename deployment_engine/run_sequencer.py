# deployment_engine/run_sequencer.py
"""Command line entry point for the deployment sequencer."""

import json
import logging
import sys

import click

from deployment_engine.config import DeploySettings
from deployment_engine.container import build_container
from deployment_engine.core.errors import DeploymentError, StageApplyError
from deployment_engine.domain.manifests import render_stages
from deployment_engine.domain.templates import TEMPLATES


logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def _stages(ctx: click.Context):
    settings = ctx.obj["settings"]
    return TEMPLATES[ctx.obj["template"]](settings)


def _run_summary(run) -> dict:
    return {
        "run_id": str(run.run_id),
        "status": run.status.value,
        "failed_stage_id": run.failed_stage_id,
        "error_message": run.error_message,
        "stages": [
            {"stage_id": sr.stage_id, "status": sr.status.value, "error": sr.error_message}
            for sr in run.stage_runs
        ],
    }


@click.group()
@click.option("--template", default="django-mysql", show_default=True,
              type=click.Choice(sorted(TEMPLATES)), help="Stage set to deploy.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, template: str, verbose: bool) -> None:
    """Apply a deployment stage set in dependency order."""
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["template"] = template
    ctx.obj["settings"] = DeploySettings()


@cli.command()
@click.pass_context
def plan(ctx: click.Context) -> None:
    """Print the stage order."""
    container = build_container(ctx.obj["settings"], dry_run=True)
    for i, stage in enumerate(container.sequencer.plan(_stages(ctx)), start=1):
        deps = ", ".join(stage.depends_on) or "-"
        click.echo(f"{i}. {stage.stage_id:<12} {stage.stage_type.value:<12} after: {deps}")


@cli.command()
@click.pass_context
def render(ctx: click.Context) -> None:
    """Print every manifest as multi-document YAML."""
    stages = build_container(ctx.obj["settings"], dry_run=True).sequencer.plan(_stages(ctx))
    click.echo(render_stages(stages, namespace=ctx.obj["settings"].namespace))


@cli.command()
@click.option("--dry-run", is_flag=True, help="Apply against in-memory stand-ins.")
@click.option("--ledger", is_flag=True, help="Record the run in the SQL run ledger.")
@click.option("--resume", "resume_run_id", type=click.UUID, default=None, help="Reuse stages completed in this run.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def apply(ctx: click.Context, dry_run: bool, ledger: bool, resume_run_id, as_json: bool) -> None:
    """Apply all stages; stop at the first failing stage."""
    if resume_run_id and not ledger:
        raise click.UsageError("--resume needs --ledger (runs are only kept in the ledger)")

    container = build_container(ctx.obj["settings"], dry_run=dry_run, persistent_ledger=ledger)
    stages = _stages(ctx)

    try:
        if resume_run_id:
            run = container.sequencer.resume(resume_run_id, stages)
        else:
            run = container.sequencer.run(stages)
    except StageApplyError as e:
        click.secho(f"❌ stage '{e.stage_id}' failed: {e.cause}", fg="red", err=True)
        sys.exit(1)
    except DeploymentError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(2)

    if as_json:
        click.echo(json.dumps(_run_summary(run), indent=2))
        return

    click.secho(f"✅ run {run.run_id} completed", fg="green")
    for sr in run.stage_runs:
        click.echo(f"   {sr.stage_id:<12} {sr.status.value}")


@cli.command()
@click.option("--skip-routes", is_flag=True, help="Do not send HTTP requests to external routes.")
@click.pass_context
def verify(ctx: click.Context, skip_routes: bool) -> None:
    """Check env bindings, database connectivity and routes."""
    container = build_container(ctx.obj["settings"])
    try:
        report = container.verifier.verify_all(_stages(ctx), check_routes=not skip_routes)
    except DeploymentError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    for item in report:
        subject = item.get("workload") or item.get("url")
        click.echo(f"   ✅ {item['check']:<12} {subject}")


@cli.command()
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
def teardown(ctx: click.Context, yes: bool) -> None:
    """Delete every entity of the stage set, dependents first."""
    if not yes:
        click.confirm("Delete all deployed entities?", abort=True)

    container = build_container(ctx.obj["settings"])
    try:
        deleted = container.sequencer.teardown(_stages(ctx))
    except DeploymentError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    for item in deleted:
        state = "deleted" if item["deleted"] else "absent"
        click.echo(f"   {item['kind']}/{item['name']} {state}")


@cli.command()
@click.option("--limit", default=10, show_default=True)
def runs(limit: int) -> None:
    """List recent runs from the SQL run ledger."""
    container = build_container(persistent_ledger=True, dry_run=True)
    for run in container.run_repository.list_recent(limit):
        failed = f" (failed at {run.failed_stage_id})" if run.failed_stage_id else ""
        click.echo(f"{run.run_id}  {run.status.value}{failed}")


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
