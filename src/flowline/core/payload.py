"""Structured payload documents stored as text on an initiative.

The document shape depends on the initiative's pipeline and stage.  A
registry keyed by ``(pipeline, stage)`` supplies the empty canonical shape
for each; readers parse the stored text and fill any missing keys from
that shape, so a malformed or absent payload silently becomes the default.

Writers always re-serialize the whole document.  Updates are applied at
the initiative-field level, never as a patch inside the text.
"""

from __future__ import annotations

import copy
import json
from collections.abc import Callable, Mapping

from flowline.core.pipelines import pipeline_key
from flowline.core.stages import normalize_stage

PayloadFactory = Callable[[], dict]


def empty_campaign_strategy() -> dict:
    return {
        "phases": [],
        "channels": [],
        "kpis": [],
        "audienceSegments": [],
        "campaignType": "",
        "subGoal": "",
        "pillar": "",
        "suggestedChannels": [],
        "suggestedTactics": [],
    }


def empty_marketing_plan() -> dict:
    return {"phases": [], "channels": [], "kpis": [], "audienceSegments": []}


class PayloadRegistry:
    """Map ``(pipeline, stage)`` to a factory for the empty document.

    Lookup order: exact ``(pipeline, stage)``, then ``(pipeline, None)``,
    then the global default (an empty dict).
    """

    def __init__(self) -> None:
        self._factories: dict[tuple[str, str | None], PayloadFactory] = {}

    def register(self, pipeline: str, stage: str | None, factory: PayloadFactory) -> None:
        self._factories[(pipeline, stage)] = factory

    def default_for(
        self,
        initiative_type: str | None,
        sub_type: str | None = None,
        stage: str | None = None,
    ) -> dict:
        key = pipeline_key(initiative_type, sub_type)
        canonical = normalize_stage(stage) or None
        factory = self._factories.get((key, canonical)) or self._factories.get((key, None))
        return factory() if factory is not None else {}


def _default_registry() -> PayloadRegistry:
    registry = PayloadRegistry()
    registry.register("SocialCampaign", None, empty_campaign_strategy)
    registry.register("Marketing", "Planning", empty_marketing_plan)
    registry.register("Marketing", "Strategy", empty_marketing_plan)
    return registry


DEFAULT_REGISTRY = _default_registry()


def parse_payload(
    text: str | None,
    initiative_type: str | None = None,
    sub_type: str | None = None,
    stage: str | None = None,
    registry: PayloadRegistry | None = None,
) -> dict:
    """Parse *text* into a document, substituting the empty shape on failure."""
    default = (registry or DEFAULT_REGISTRY).default_for(initiative_type, sub_type, stage)
    if not isinstance(text, str) or not text.strip():
        return default
    try:
        parsed = json.loads(text)
    except ValueError:
        return default
    if not isinstance(parsed, dict):
        return default
    for key, value in default.items():
        if key not in parsed or not isinstance(parsed[key], type(value)):
            parsed[key] = value
    return parsed


def serialize_payload(document: Mapping) -> str:
    """Serialize a whole payload document to its stored text form."""
    return json.dumps(document, sort_keys=True)


def merge_payload(
    text: str | None,
    updates: Mapping,
    initiative_type: str | None = None,
    sub_type: str | None = None,
    stage: str | None = None,
) -> str:
    """Shallow-merge *updates* into the stored document and re-serialize all of it."""
    document = parse_payload(text, initiative_type, sub_type, stage)
    document.update(copy.deepcopy(dict(updates)))
    return serialize_payload(document)


def initiative_document(initiative: Mapping, stage: str | None = None) -> dict:
    """Parse the payload of *initiative* using its own type, sub-type and stage."""
    return parse_payload(
        initiative.get("payload"),
        initiative.get("type"),
        initiative.get("subType"),
        stage if stage is not None else initiative.get("stage"),
    )
