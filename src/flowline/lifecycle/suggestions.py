"""Boundary with the generative suggestion service.

Service responses are untrusted.  They are always passed through
:func:`~flowline.core.plan.normalize_plan`, and a failing service merges
nothing.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Protocol

from flowline.core.payload import initiative_document, serialize_payload
from flowline.core.plan import CampaignPlan, normalize_plan
from flowline.core.strategy import load_campaign_strategy

logger = logging.getLogger(__name__)


class SuggestionService(Protocol):
    async def generate(self, context: Mapping, instructions: str) -> object: ...


class SuggestionError(Exception):
    """Raised by suggestion services that fail in a known way."""


def suggestion_context(initiative: Mapping) -> dict:
    """The slice of an initiative sent to the service."""
    return {
        "title": initiative.get("title", ""),
        "type": initiative.get("type"),
        "subType": initiative.get("subType"),
        "stage": initiative.get("stage"),
        "document": initiative_document(initiative),
    }


async def request_plan(
    service: SuggestionService,
    initiative: Mapping,
    instructions: str = "",
) -> CampaignPlan | None:
    """Ask *service* for a plan and normalize it.

    Returns ``None`` when the service raises; the caller then leaves the
    initiative untouched.
    """
    try:
        raw = await service.generate(suggestion_context(initiative), instructions)
    except Exception as exc:
        logger.warning("Suggestion request failed for %s: %s", initiative.get("id"), exc)
        return None
    return normalize_plan(raw)


def plan_updates(initiative: Mapping, plan: CampaignPlan, stage: str | None = None) -> dict:
    """Build the ``payload`` update that merges *plan* into the strategy document.

    The suggested channels are also kept as tactics so a channel toggled
    off and on again comes back with the suggested cadence.
    """
    strategy = load_campaign_strategy(initiative_document(initiative, stage))
    strategy.update(
        {
            "phases": plan["phases"],
            "channels": plan["channels"],
            "kpis": plan["kpis"],
            "audienceSegments": plan["audienceSegments"],
            "campaignType": plan["campaignType"],
            "subGoal": plan["subGoal"],
            "pillar": plan["pillar"],
            "suggestedChannels": [c["channelId"] for c in plan["channels"]],
            "suggestedTactics": plan["channels"],
        }
    )
    return {"payload": serialize_payload(strategy)}


async def apply_suggestion(controller, service: SuggestionService, instructions: str = "") -> bool:
    """Request a plan for the controller's initiative and apply it as one edit.

    Returns ``False`` (and applies nothing) if the service failed.
    """
    plan = await request_plan(service, controller.snapshot or {}, instructions)
    if plan is None:
        return False
    controller.apply_update(plan_updates(controller.snapshot, plan, controller.active_stage))
    return True
