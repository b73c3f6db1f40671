"""Tests for merging suggestion-service plans."""

from __future__ import annotations

import asyncio
import json

import pytest

from flowline.lifecycle.controller import LifecycleController
from flowline.lifecycle.suggestions import (
    SuggestionError,
    apply_suggestion,
    plan_updates,
    request_plan,
    suggestion_context,
)

PLAN = {
    "campaignType": "Launch",
    "phases": [{"name": "Tease", "duration": "2 weeks"}],
    "channels": [
        {"channelId": "Instagram", "frequency": "3 posts per week"},
        {"channelId": "TikTok", "frequency": "about 1.2 a day"},
    ],
}


class StaticService:
    def __init__(self, response: object) -> None:
        self.response = response
        self.calls: list[tuple[dict, str]] = []

    async def generate(self, context, instructions: str) -> object:
        self.calls.append((dict(context), instructions))
        return self.response


class FailingService:
    async def generate(self, context, instructions: str) -> object:
        raise SuggestionError("model unavailable")


def _initiative(**fields: object) -> dict:
    return {
        "id": "init_C",
        "type": "Social",
        "subType": "campaign",
        "stage": "Strategy",
        "title": "Spring",
        "payload": json.dumps({"pillar": "Growth", "notes": "keep me"}),
        **fields,
    }


class TestRequestPlan:
    def test_normalizes_response(self) -> None:
        service = StaticService(json.dumps(PLAN))
        plan = asyncio.run(request_plan(service, _initiative(), "be bold"))
        assert plan is not None
        assert [c["frequencyValue"] for c in plan["channels"]] == [3, 1]
        assert service.calls[0][1] == "be bold"
        assert service.calls[0][0]["document"]["pillar"] == "Growth"

    def test_failure_returns_none(self, caplog: pytest.LogCaptureFixture) -> None:
        assert asyncio.run(request_plan(FailingService(), _initiative())) is None
        assert "model unavailable" in caplog.text

    def test_garbage_response_gives_empty_plan(self) -> None:
        plan = asyncio.run(request_plan(StaticService("<html>"), _initiative()))
        assert plan is not None
        assert plan["phases"] == []

    def test_context(self) -> None:
        context = suggestion_context(_initiative())
        assert context["title"] == "Spring"
        assert context["stage"] == "Strategy"


class TestPlanUpdates:
    def test_merges_into_existing_document(self) -> None:
        plan = asyncio.run(request_plan(StaticService(PLAN), _initiative()))
        update = plan_updates(_initiative(), plan)
        assert list(update) == ["payload"]
        doc = json.loads(update["payload"])
        assert doc["pillar"] == ""
        assert doc["notes"] == "keep me"
        assert doc["campaignType"] == "Launch"
        assert doc["suggestedChannels"] == ["Instagram", "TikTok"]
        assert doc["suggestedTactics"] == doc["channels"]
        assert doc["phases"][0]["name"] == "Tease"


class FakeStore:
    def __init__(self, snapshot: dict) -> None:
        self.snapshot = snapshot
        self.updates: list[dict] = []

    def subscribe(self, initiative_id: str, callback):
        callback(dict(self.snapshot))
        return lambda: None

    async def update(self, initiative_id: str, partial: dict) -> None:
        self.updates.append(dict(partial))


class TestApplySuggestion:
    def test_applies_one_payload_update(self) -> None:
        store = FakeStore(_initiative())

        async def scenario() -> bool:
            with LifecycleController(store, "init_C", quiet_period=0.01) as controller:
                applied = await apply_suggestion(controller, StaticService(PLAN))
                await controller.flush()
                return applied

        assert asyncio.run(scenario()) is True
        assert len(store.updates) == 1
        assert json.loads(store.updates[0]["payload"])["campaignType"] == "Launch"

    def test_failure_merges_nothing(self) -> None:
        store = FakeStore(_initiative())

        async def scenario() -> bool:
            with LifecycleController(store, "init_C", quiet_period=0.01) as controller:
                applied = await apply_suggestion(controller, FailingService())
                await controller.flush()
                return applied

        assert asyncio.run(scenario()) is False
        assert store.updates == []
