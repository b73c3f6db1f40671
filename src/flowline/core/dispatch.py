"""Stage-view dispatch: ``(type, sub_type, stage)`` -> presentation key.

The presentation layer registers one handler per key; this module only
decides which key applies.  Two choices gate every stage view: a Social
initiative needs post or campaign, and a Marketing initiative needs paid
ads or email marketing.
"""

from __future__ import annotations

from flowline.core.pipelines import (
    CAMPAIGN_SUB_TYPE,
    PIPELINES,
    POST_SUB_TYPE,
    first_stage_id,
    pipeline_key,
)
from flowline.core.stages import normalize_stage

GATING_KEY = "Social:choose-sub-type"
MARKETING_GATING_KEY = "Marketing:choose-type"
GENERIC_KEY = "generic"

SOCIAL_SUB_TYPES: tuple[str, ...] = (POST_SUB_TYPE, CAMPAIGN_SUB_TYPE)

PAID_AD = "paidAd"
EMAIL_MARKETING = "emailMarketing"
MARKETING_TYPES: tuple[str, ...] = (PAID_AD, EMAIL_MARKETING)


class ViewRegistry:
    """Lookup table from ``(pipeline, stage)`` to a view key."""

    def __init__(self) -> None:
        self._views: dict[tuple[str, str], str] = {}
        self._fallbacks: dict[str, str] = {}

    def register(self, pipeline: str, stage: str, key: str) -> None:
        self._views[(pipeline, stage)] = key

    def set_fallback(self, pipeline: str, key: str) -> None:
        """Use *key* for stages of *pipeline* that have no registered view."""
        self._fallbacks[pipeline] = key

    def lookup(self, pipeline: str, stage: str) -> str:
        key = self._views.get((pipeline, stage))
        if key is not None:
            return key
        return self._fallbacks.get(pipeline, GENERIC_KEY)


def _default_registry() -> ViewRegistry:
    registry = ViewRegistry()
    for pipeline, stages in PIPELINES.items():
        for stage in stages:
            registry.register(pipeline, stage.id, f"{pipeline}:{stage.id}")

    # Views shared between pipelines.
    registry.register("Feature", "Submit", "Feature:Approval")
    registry.register("Feature", "Approved", "Feature:Approval")
    registry.register("Product", "Concept", "Feature:Concept")
    registry.register("Social", "Brainstorm", "Feature:Brainstorm")
    registry.register("SocialCampaign", "Rejected", "SocialCampaign:Submit")
    registry.set_fallback("PaidAds", "PaidAds:Brief")
    return registry


DEFAULT_VIEWS = _default_registry()


def requires_sub_type(initiative_type: str | None, sub_type: str | None) -> bool:
    """Return ``True`` while a Social initiative has no post/campaign choice."""
    return initiative_type == "Social" and not sub_type


def requires_marketing_type(initiative_type: str | None, marketing_type: str | None) -> bool:
    """Return ``True`` while a Marketing initiative has no paid-ads/email choice."""
    return initiative_type == "Marketing" and not marketing_type


def gating_key(
    initiative_type: str | None,
    sub_type: str | None,
    marketing_type: str | None = None,
) -> str | None:
    """Return the choice screen that hides every stage view, if any."""
    if requires_sub_type(initiative_type, sub_type):
        return GATING_KEY
    if requires_marketing_type(initiative_type, marketing_type):
        return MARKETING_GATING_KEY
    return None


def dispatch_view(
    initiative_type: str | None,
    sub_type: str | None,
    active_stage: str | None,
    registry: ViewRegistry | None = None,
    marketing_type: str | None = None,
) -> str:
    """Return the presentation key for the active stage of an initiative."""
    gate = gating_key(initiative_type, sub_type, marketing_type)
    if gate is not None:
        return gate
    pipeline = pipeline_key(initiative_type, sub_type)
    return (registry or DEFAULT_VIEWS).lookup(pipeline, normalize_stage(active_stage))


def select_sub_type(sub_type: str) -> dict:
    """Build the update that records a Social sub-type choice.

    The stage moves to the first stage of the chosen pipeline in the same
    update.

    Raises:
        ValueError: If *sub_type* is not ``post`` or ``campaign``.
    """
    if sub_type not in SOCIAL_SUB_TYPES:
        raise ValueError(f"Unknown social sub-type: '{sub_type}'")
    return {"subType": sub_type, "stage": first_stage_id("Social", sub_type)}


def select_marketing_type(marketing_type: str) -> dict:
    """Build the update that records a Marketing type choice.

    Paid ads move the initiative onto the PaidAds pipeline; email marketing
    stays on Marketing.  Either way the stage jumps to the first stage of
    the resulting pipeline.

    Raises:
        ValueError: If *marketing_type* is not ``paidAd`` or ``emailMarketing``.
    """
    if marketing_type not in MARKETING_TYPES:
        raise ValueError(f"Unknown marketing type: '{marketing_type}'")
    if marketing_type == PAID_AD:
        return {"marketingType": PAID_AD, "type": "PaidAds", "stage": first_stage_id("PaidAds")}
    return {"marketingType": marketing_type, "stage": first_stage_id("Marketing")}
