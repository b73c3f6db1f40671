"""Initiative commands: create, show, pipeline, update, submit, reject, cadence."""

from __future__ import annotations

import asyncio
import functools
from collections.abc import Callable

import click

from flowline.cli.helpers import (
    controller_timings,
    open_store,
    output_error,
    output_options,
    output_result,
    parse_assignments,
    require_initiative,
)
from flowline.cli.main import cli
from flowline.core.config import validate_initiative_type
from flowline.core.initiatives import IdentityFieldError
from flowline.core.pipelines import DEFAULT_TYPE, is_valid_stage
from flowline.core.stages import normalize_stage
from flowline.lifecycle.autosave import ERROR
from flowline.lifecycle.controller import InvalidStageError, LifecycleController
from flowline.storage.store import InitiativeStore

# ---------------------------------------------------------------------------
# flowline create
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("title")
@click.option("--type", "initiative_type", default=None, help="Initiative type (default from config).")
@click.option("--sub-type", default=None, help="Social sub-type (post or campaign).")
@click.option("--stage", default=None, help="Initial stage (default: first stage of the pipeline).")
@output_options
def create(
    title: str,
    initiative_type: str | None,
    sub_type: str | None,
    stage: str | None,
    output_json: bool,
    quiet: bool,
) -> None:
    """Create a new initiative."""
    is_json = output_json
    store, config = open_store(is_json)

    if initiative_type is None:
        initiative_type = config.get("default_type", DEFAULT_TYPE)
    if not validate_initiative_type(initiative_type):
        output_error(f"Unknown initiative type: '{initiative_type}'.", "INVALID_TYPE", is_json)
    if sub_type is not None and initiative_type != "Social":
        output_error("--sub-type only applies to Social initiatives.", "INVALID_ARGUMENT", is_json)
    if stage is not None and not is_valid_stage(initiative_type, sub_type, stage):
        output_error(
            f"Stage '{stage}' is not part of the {initiative_type} pipeline.",
            "INVALID_STAGE",
            is_json,
        )

    snapshot = store.create(initiative_type, title, sub_type=sub_type, stage=stage)

    if quiet:
        click.echo(snapshot["id"])
        return
    output_result(
        data=snapshot,
        human_message=f"Created {snapshot['id']} \"{title}\" [{snapshot['type']}] at {snapshot['stage']}",
        is_json=is_json,
    )


# ---------------------------------------------------------------------------
# flowline show
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("initiative_id")
@click.option("--json", "output_json", is_flag=True, help="Output structured JSON.")
def show(initiative_id: str, output_json: bool) -> None:
    """Show an initiative snapshot."""
    is_json = output_json
    store, _config = open_store(is_json)
    snapshot = require_initiative(store, initiative_id, is_json)

    lines = [
        f"{snapshot['id']}  {snapshot.get('title', '')}",
        f"  type:    {snapshot.get('type')}",
    ]
    if snapshot.get("subType"):
        lines.append(f"  subType: {snapshot['subType']}")
    lines.append(f"  stage:   {snapshot.get('stage')}")
    lines.append(f"  updated: {snapshot.get('updated_at')}")
    output_result(data=snapshot, human_message="\n".join(lines), is_json=is_json)


# ---------------------------------------------------------------------------
# flowline pipeline
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("initiative_id")
@click.option("--linked-status", default=None, help="Status of the linked campaign, if any.")
@click.option("--json", "output_json", is_flag=True, help="Output structured JSON.")
def pipeline(initiative_id: str, linked_status: str | None, output_json: bool) -> None:
    """Show the navigable stages and current view of an initiative."""
    is_json = output_json
    store, _config = open_store(is_json)
    require_initiative(store, initiative_id, is_json)

    with LifecycleController(store, initiative_id) as controller:
        controller.linked_status = linked_status
        stages = controller.navigable_stages()
        data = {
            "id": initiative_id,
            "stage": controller.active_stage,
            "view": controller.view_key(),
            "stages": [stage.to_dict() for stage in stages],
            "options": controller.stage_options(),
        }

    lines = []
    for stage in stages:
        marker = "*" if stage.id == data["stage"] else " "
        lines.append(f"{marker} {stage.icon} {stage.title} ({stage.id})")
    lines.append(f"view: {data['view']}")
    output_result(data=data, human_message="\n".join(lines), is_json=is_json)


# ---------------------------------------------------------------------------
# flowline update
# ---------------------------------------------------------------------------


async def _apply_and_drain(
    controller: LifecycleController, edit: Callable[[LifecycleController], None]
) -> str:
    with controller:
        edit(controller)
        await controller.flush()
        return controller.save_status


def _run_edit(
    store: InitiativeStore,
    config: dict,
    initiative_id: str,
    edit: Callable[[LifecycleController], None],
    is_json: bool,
) -> dict:
    """Apply *edit* through a controller, wait for the save, return the stored snapshot."""
    controller = LifecycleController(store, initiative_id, **controller_timings(config))
    try:
        status = asyncio.run(_apply_and_drain(controller, edit))
    except IdentityFieldError as e:
        output_error(str(e), "IDENTITY_FIELD", is_json)
    except InvalidStageError as e:
        output_error(str(e), "INVALID_STAGE", is_json)

    if status == ERROR:
        output_error(f"Could not save {initiative_id}.", "WRITE_ERROR", is_json)
    return store.get(initiative_id)


@cli.command()
@click.argument("initiative_id")
@click.argument("assignments", nargs=-1, required=True)
@output_options
def update(
    initiative_id: str,
    assignments: tuple[str, ...],
    output_json: bool,
    quiet: bool,
) -> None:
    """Update fields: flowline update ID field=value [field=value ...]

    Values that parse as JSON are stored decoded; anything else is stored
    as a string.  Pending edits are saved before the command exits.
    """
    is_json = output_json
    store, config = open_store(is_json)
    current = require_initiative(store, initiative_id, is_json)
    fields = parse_assignments(assignments, is_json)

    new_type = fields.get("type")
    if isinstance(new_type, str) and new_type and not validate_initiative_type(new_type):
        output_error(f"Unknown initiative type: '{new_type}'.", "INVALID_TYPE", is_json)

    if "stage" in fields:
        stage = fields["stage"]
        initiative_type = fields.get("type", current.get("type"))
        sub_type = fields.get("subType", current.get("subType"))
        if not isinstance(stage, str) or not is_valid_stage(initiative_type, sub_type, stage):
            output_error(
                f"Stage {stage!r} is not part of the {initiative_type} pipeline.",
                "INVALID_STAGE",
                is_json,
            )
        fields["stage"] = normalize_stage(stage)

    snapshot = _run_edit(store, config, initiative_id, lambda c: c.apply_update(fields), is_json)
    if quiet:
        click.echo(snapshot["id"])
        return
    output_result(
        data=snapshot,
        human_message=f"Updated {initiative_id}: {', '.join(sorted(fields))}",
        is_json=is_json,
    )


# ---------------------------------------------------------------------------
# flowline submit / reject
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("initiative_id")
@output_options
def submit(initiative_id: str, output_json: bool, quiet: bool) -> None:
    """Send an initiative to review."""
    is_json = output_json
    store, config = open_store(is_json)
    require_initiative(store, initiative_id, is_json)

    edit = LifecycleController.submit_for_review
    snapshot = _run_edit(store, config, initiative_id, edit, is_json)
    if quiet:
        click.echo(snapshot["id"])
        return
    output_result(
        data=snapshot,
        human_message=f"Submitted {initiative_id} for review",
        is_json=is_json,
    )


@cli.command()
@click.argument("initiative_id")
@click.option("--reason", default=None, help="Why the initiative goes back to Refining.")
@click.option("--entirely", is_flag=True, help="Move to Rejected instead of Refining.")
@click.option(
    "--campaign",
    is_flag=True,
    help="Return a submitted campaign to Submit and unlink its campaign.",
)
@output_options
def reject(
    initiative_id: str,
    reason: str | None,
    entirely: bool,
    campaign: bool,
    output_json: bool,
    quiet: bool,
) -> None:
    """Reject an initiative (default: back to Refining)."""
    is_json = output_json
    if entirely and campaign:
        output_error("--entirely and --campaign cannot be combined.", "INVALID_ARGUMENT", is_json)
    if reason is not None and (entirely or campaign):
        output_error(
            "--reason only applies to a rejection to Refining.", "INVALID_ARGUMENT", is_json
        )
    store, config = open_store(is_json)
    require_initiative(store, initiative_id, is_json)

    if entirely:
        edit = LifecycleController.reject_entirely
    elif campaign:
        edit = LifecycleController.reject_campaign
    else:
        edit = functools.partial(LifecycleController.reject, reason=reason)

    snapshot = _run_edit(store, config, initiative_id, edit, is_json)
    if quiet:
        click.echo(snapshot["id"])
        return
    output_result(
        data=snapshot,
        human_message=f"Rejected {initiative_id}: now at {snapshot['stage']}",
        is_json=is_json,
    )


# ---------------------------------------------------------------------------
# flowline cadence
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("initiative_id")
@click.option("--json", "output_json", is_flag=True, help="Output structured JSON.")
def cadence(initiative_id: str, output_json: bool) -> None:
    """Show total posting output for a campaign strategy."""
    is_json = output_json
    store, _config = open_store(is_json)
    require_initiative(store, initiative_id, is_json)

    with LifecycleController(store, initiative_id) as controller:
        summary = controller.cadence()

    weekly = summary["average_per_week"]
    lines = [
        f"{channel}: {count} (~{weekly[channel]}/week)"
        for channel, count in summary["by_channel"].items()
    ]
    lines.append(f"Total: {summary['total']} over {summary['total_days']} days")
    output_result(data=summary, human_message="\n".join(lines), is_json=is_json)
