"""Compiled-in stage pipelines per initiative type and sub-type."""

from __future__ import annotations

from dataclasses import dataclass

from flowline.core.stages import META_STAGES, normalize_stage


@dataclass(frozen=True)
class Stage:
    """One step of a pipeline.

    ``id`` is the canonical stage key stored on initiatives; ``title`` and
    ``icon`` are only carried through for presentation.
    """

    id: str
    icon: str
    title: str = ""

    def to_dict(self) -> dict:
        return {"id": self.id, "icon": self.icon, "title": self.title or self.id}


DEFAULT_TYPE = "Feature"
CAMPAIGN_SUB_TYPE = "campaign"
POST_SUB_TYPE = "post"

# Review stages are keyed "Submit" so that legacy "Review" / "PendingReview"
# values normalize onto a stage that exists in the pipeline.
PIPELINES: dict[str, tuple[Stage, ...]] = {
    "Feature": (
        Stage("Brainstorm", "psychology", "Brainstorm"),
        Stage("Refining", "tune", "Refining"),
        Stage("Concept", "architecture", "Concept"),
        Stage("Submit", "rate_review", "In Review"),
        Stage("Approved", "verified", "Approved"),
    ),
    "Product": (
        Stage("Discovery", "explore", "Discovery"),
        Stage("Definition", "article", "Definition"),
        Stage("Development", "construction", "Development"),
        Stage("Concept", "architecture", "Concept"),
        Stage("Launch", "rocket", "Launch"),
    ),
    "Marketing": (
        Stage("Strategy", "ads_click", "Strategy"),
        Stage("Planning", "calendar_month", "Planning"),
        Stage("Execution", "bolt", "Execution"),
        Stage("Analysis", "analytics", "Analysis"),
    ),
    "Social": (
        Stage("Brainstorm", "psychology", "Brainstorm"),
        Stage("Strategy", "ads_click", "Strategy"),
        Stage("CreativeLab", "experiment", "Creative Lab"),
        Stage("Studio", "movie_edit", "Content Studio"),
        Stage("Distribution", "analytics", "Distribution"),
    ),
    "SocialCampaign": (
        Stage("Concept", "lightbulb", "Concept"),
        Stage("Strategy", "ads_click", "Strategy"),
        Stage("Planning", "calendar_month", "Planning"),
        Stage("Submit", "send", "Submit"),
        Stage("Approved", "check_circle", "Live / Integrated"),
        Stage("Rejected", "cancel", "Rejected"),
    ),
    "Moonshot": (
        Stage("Feasibility", "science", "Feasibility"),
        Stage("Prototype", "precision_manufacturing", "Prototype"),
        Stage("Greenlight", "check_circle", "Greenlight"),
    ),
    "Optimization": (
        Stage("Analysis", "analytics", "Analysis"),
        Stage("Proposal", "description", "Proposal"),
        Stage("Benchmark", "speed", "Benchmark"),
        Stage("Implementation", "code", "Implementation"),
    ),
    "PaidAds": (
        Stage("Brief", "description", "Brief"),
        Stage("Research", "insights", "Research"),
        Stage("Creative", "palette", "Creative"),
        Stage("Targeting", "target", "Targeting"),
        Stage("Budget", "payments", "Budget"),
        Stage("Build", "fact_check", "Build & QA"),
        Stage("Submit", "rate_review", "Review"),
        Stage("Live", "bolt", "Live"),
        Stage("Optimization", "auto_graph", "Optimization"),
    ),
}

INITIATIVE_TYPES: tuple[str, ...] = tuple(PIPELINES)

# Stages hidden from navigation until the initiative (or its linked
# campaign) has actually reached them.  Values are the linked-resource
# statuses that count as having reached the gated stage.
GATED_STAGES: dict[str, frozenset[str]] = {
    "Approved": frozenset({"Active", "Completed"}),
    "Rejected": frozenset({"Rejected"}),
}


def pipeline_key(initiative_type: str | None, sub_type: str | None = None) -> str:
    """Return the PIPELINES key for an initiative type and sub-type."""
    if initiative_type == "Social" and sub_type == CAMPAIGN_SUB_TYPE:
        return "SocialCampaign"
    if initiative_type in PIPELINES:
        return initiative_type
    return DEFAULT_TYPE


def resolve_pipeline(initiative_type: str | None, sub_type: str | None = None) -> tuple[Stage, ...]:
    """Return the ordered stages for *initiative_type* / *sub_type*.

    Unknown or missing types fall back to the Feature pipeline.
    """
    return PIPELINES[pipeline_key(initiative_type, sub_type)]


def first_stage_id(initiative_type: str | None, sub_type: str | None = None) -> str:
    return resolve_pipeline(initiative_type, sub_type)[0].id


def stage_ids(stages: tuple[Stage, ...] | list[Stage]) -> list[str]:
    return [stage.id for stage in stages]


def is_campaign(initiative_type: str | None, sub_type: str | None) -> bool:
    return pipeline_key(initiative_type, sub_type) == "SocialCampaign"


def filter_gated_stages(
    stages: tuple[Stage, ...] | list[Stage],
    current_stage: str | None,
    linked_status: str | None = None,
) -> list[Stage]:
    """Drop gated stages the initiative has not reached yet.

    A stage is kept if it is not gated, if it equals the initiative's
    current canonical stage, or if *linked_status* (the status of the
    cross-referenced campaign) shows the gated state was reached.
    """
    current = normalize_stage(current_stage)
    kept: list[Stage] = []
    for stage in stages:
        reached_by = GATED_STAGES.get(stage.id)
        if reached_by is None or stage.id == current or linked_status in reached_by:
            kept.append(stage)
    return kept


def navigable_stages(
    initiative_type: str | None,
    sub_type: str | None,
    current_stage: str | None,
    linked_status: str | None = None,
) -> list[Stage]:
    """Return the stages shown in navigation for an initiative.

    Gating only applies to campaign pipelines; every other pipeline is
    returned in full.
    """
    stages = resolve_pipeline(initiative_type, sub_type)
    if is_campaign(initiative_type, sub_type):
        return filter_gated_stages(stages, current_stage, linked_status)
    return list(stages)


def stage_options(
    initiative_type: str | None,
    sub_type: str | None,
    current_stage: str | None,
    linked_status: str | None = None,
) -> list[str]:
    """Return every stage id an initiative may be moved to."""
    ids = stage_ids(navigable_stages(initiative_type, sub_type, current_stage, linked_status))
    return ids + [meta for meta in META_STAGES if meta not in ids]


def is_valid_stage(
    initiative_type: str | None,
    sub_type: str | None,
    stage: str | None,
) -> bool:
    """Return ``True`` if the normalized *stage* belongs to the pipeline or is a meta stage."""
    canonical = normalize_stage(stage)
    if canonical in META_STAGES:
        return True
    return canonical in stage_ids(resolve_pipeline(initiative_type, sub_type))
