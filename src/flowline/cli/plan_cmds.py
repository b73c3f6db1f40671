"""Plan command: normalize a free-form campaign plan into canonical records."""

from __future__ import annotations

import click

from flowline.cli.helpers import output_result
from flowline.cli.main import cli
from flowline.core.cadence import summarize_cadence
from flowline.core.plan import normalize_plan


@cli.command("normalize-plan")
@click.argument("plan_file", type=click.File("r"))
@click.option("--summary", is_flag=True, help="Include the posting totals for the plan.")
@click.option("--json", "output_json", is_flag=True, help="Output structured JSON.")
def normalize_plan_cmd(plan_file, summary: bool, output_json: bool) -> None:  # noqa: ANN001
    """Normalize a plan file (JSON; '-' reads stdin).

    Malformed input never fails: unreadable parts are dropped and missing
    values take their defaults.
    """
    plan = normalize_plan(plan_file.read())
    data: dict = {"plan": plan}
    totals = summarize_cadence(plan["phases"], plan["channels"]) if summary else None
    if totals is not None:
        data["cadence"] = totals

    lines = [f"Phases ({len(plan['phases'])}):"]
    for phase in plan["phases"]:
        name = phase["name"] or "(unnamed)"
        lines.append(f"  {name}: {phase['durationValue']} {phase['durationUnit']}")
    lines.append(f"Channels ({len(plan['channels'])}):")
    for channel in plan["channels"]:
        lines.append(
            f"  {channel['channelId']}: {channel['frequencyValue']} {channel['frequencyUnit']}"
        )
    if totals is not None:
        lines.append(f"Total posts: {totals['total']}")
    output_result(data=data, human_message="\n".join(lines), is_json=output_json)
