"""Tests for the initiative CLI commands."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from flowline.cli.main import cli

UNKNOWN_ID = "init_" + "0" * 26


def _create(invoke_json, *args: str) -> dict:
    parsed, code = invoke_json("create", *args)
    assert code == 0, parsed
    return parsed["data"]


class TestCreate:
    def test_default_type_from_config(self, invoke_json) -> None:
        data = _create(invoke_json, "New onboarding")
        assert data["type"] == "Feature"
        assert data["stage"] == "Brainstorm"
        assert data["id"].startswith("init_")

    def test_social_campaign(self, invoke_json) -> None:
        data = _create(invoke_json, "Spring", "--type", "Social", "--sub-type", "campaign")
        assert data["subType"] == "campaign"
        assert data["stage"] == "Concept"

    def test_stage_alias_normalized(self, invoke_json) -> None:
        data = _create(invoke_json, "Spring", "--type", "Feature", "--stage", "PendingReview")
        assert data["stage"] == "Submit"

    def test_unknown_type(self, invoke_json) -> None:
        parsed, code = invoke_json("create", "X", "--type", "Podcast")
        assert code == 1
        assert parsed == {
            "ok": False,
            "error": {"code": "INVALID_TYPE", "message": "Unknown initiative type: 'Podcast'."},
        }

    def test_invalid_stage(self, invoke_json) -> None:
        parsed, code = invoke_json("create", "X", "--type", "Moonshot", "--stage", "Studio")
        assert code == 1
        assert parsed["error"]["code"] == "INVALID_STAGE"

    def test_sub_type_only_for_social(self, invoke_json) -> None:
        parsed, code = invoke_json("create", "X", "--type", "Feature", "--sub-type", "post")
        assert code == 1
        assert parsed["error"]["code"] == "INVALID_ARGUMENT"

    def test_quiet_prints_id(self, invoke) -> None:
        result = invoke("create", "Quiet one", "--quiet")
        assert result.exit_code == 0
        assert result.output.strip().startswith("init_")

    def test_human_output(self, invoke) -> None:
        result = invoke("create", "Readable", "--type", "Marketing")
        assert result.exit_code == 0
        assert '"Readable" [Marketing] at Strategy' in result.output


class TestShow:
    def test_show_json(self, invoke_json) -> None:
        created = _create(invoke_json, "Show me")
        parsed, code = invoke_json("show", created["id"])
        assert code == 0
        assert parsed["data"] == created

    def test_show_human(self, invoke, invoke_json) -> None:
        created = _create(invoke_json, "Show me", "--type", "Social", "--sub-type", "post")
        result = invoke("show", created["id"])
        assert "subType: post" in result.output
        assert "stage:   Brainstorm" in result.output

    def test_not_found(self, invoke_json) -> None:
        parsed, code = invoke_json("show", UNKNOWN_ID)
        assert code == 1
        assert parsed["error"]["code"] == "NOT_FOUND"

    @pytest.mark.parametrize(
        "bad_id", ["init_missing", "../config", "phase_01HZX3M6Q8V2N4R7T9W1Y3B5D7"]
    )
    def test_malformed_id(self, invoke_json, bad_id: str) -> None:
        parsed, code = invoke_json("show", bad_id)
        assert code == 1
        assert parsed["error"]["code"] == "INVALID_ID"

    def test_not_initialized(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.delenv("FLOWLINE_ROOT", raising=False)
        monkeypatch.chdir(tmp_path)
        result = CliRunner().invoke(cli, ["show", "init_x", "--json"])
        assert result.exit_code == 1
        assert json.loads(result.stdout)["error"]["code"] == "NOT_INITIALIZED"


class TestPipeline:
    def test_social_without_sub_type_is_gated(self, invoke_json) -> None:
        created = _create(invoke_json, "Undecided", "--type", "Social")
        parsed, code = invoke_json("pipeline", created["id"])
        assert code == 0
        assert parsed["data"]["view"] == "Social:choose-sub-type"

    def test_campaign_gating(self, invoke_json) -> None:
        created = _create(invoke_json, "Spring", "--type", "Social", "--sub-type", "campaign")
        parsed, _ = invoke_json("pipeline", created["id"])
        ids = [s["id"] for s in parsed["data"]["stages"]]
        assert ids == ["Concept", "Strategy", "Planning", "Submit"]
        assert parsed["data"]["options"][-2:] == ["Implemented", "Archived"]

        parsed, _ = invoke_json("pipeline", created["id"], "--linked-status", "Active")
        assert "Approved" in [s["id"] for s in parsed["data"]["stages"]]

    def test_human_marks_current_stage(self, invoke, invoke_json) -> None:
        created = _create(invoke_json, "Marked", "--type", "Moonshot")
        result = invoke("pipeline", created["id"])
        assert "* science Feasibility (Feasibility)" in result.output
        assert "view: Moonshot:Feasibility" in result.output


class TestUpdate:
    def test_update_fields(self, invoke_json) -> None:
        created = _create(invoke_json, "Spring", "--type", "Social", "--sub-type", "campaign")
        parsed, code = invoke_json("update", created["id"], "title=Spring 2", "stage=Review")
        assert code == 0, parsed
        assert parsed["data"]["title"] == "Spring 2"
        assert parsed["data"]["stage"] == "Submit"

    def test_sub_type_choice_moves_stage(self, invoke_json) -> None:
        created = _create(invoke_json, "Undecided", "--type", "Social")
        parsed, code = invoke_json("update", created["id"], "subType=campaign")
        assert code == 0
        assert parsed["data"]["stage"] == "Concept"

    def test_json_values_are_decoded(self, invoke_json) -> None:
        created = _create(invoke_json, "Typed")
        parsed, _ = invoke_json("update", created["id"], 'tags=["a", "b"]', "linkedStatus=null")
        assert parsed["data"]["tags"] == ["a", "b"]
        assert parsed["data"]["linkedStatus"] is None

    def test_identity_change_rejected(self, invoke_json) -> None:
        created = _create(invoke_json, "Fixed")
        parsed, code = invoke_json("update", created["id"], "id=init_other")
        assert code == 1
        assert parsed["error"]["code"] == "IDENTITY_FIELD"

    def test_type_change(self, invoke_json) -> None:
        created = _create(invoke_json, "Ads", "--type", "Marketing")
        parsed, code = invoke_json("update", created["id"], "type=PaidAds", "stage=Brief")
        assert code == 0
        assert (parsed["data"]["type"], parsed["data"]["stage"]) == ("PaidAds", "Brief")

        parsed, code = invoke_json("update", created["id"], "type=Podcast")
        assert code == 1
        assert parsed["error"]["code"] == "INVALID_TYPE"

    def test_invalid_stage_rejected(self, invoke_json) -> None:
        created = _create(invoke_json, "Fixed", "--type", "Moonshot")
        parsed, code = invoke_json("update", created["id"], "stage=Studio")
        assert code == 1
        assert parsed["error"]["code"] == "INVALID_STAGE"

    def test_malformed_assignment(self, invoke_json) -> None:
        created = _create(invoke_json, "Fixed")
        parsed, code = invoke_json("update", created["id"], "title")
        assert code == 1
        assert parsed["error"]["code"] == "INVALID_ARGUMENT"

    @pytest.mark.parametrize("assignment", ["stage=", "stage=5", "stage=null"])
    def test_stage_must_be_a_stage_name(self, invoke_json, assignment: str) -> None:
        created = _create(invoke_json, "Fixed", "--type", "Moonshot")
        parsed, code = invoke_json("update", created["id"], assignment)
        assert code == 1
        assert parsed["error"]["code"] == "INVALID_STAGE"
        parsed, _ = invoke_json("show", created["id"])
        assert parsed["data"]["stage"] == "Feasibility"

    def test_write_failure_reported(self, invoke_json, monkeypatch) -> None:
        created = _create(invoke_json, "Doomed")

        def fail(*args: object, **kwargs: object) -> None:
            raise OSError("read-only file system")

        monkeypatch.setattr("flowline.storage.store.replace_file", fail)
        parsed, code = invoke_json("update", created["id"], "title=Nope")
        assert code == 1
        assert parsed["error"]["code"] == "WRITE_ERROR"


class TestMarketingGate:
    def test_marketing_without_type_is_gated(self, invoke_json) -> None:
        created = _create(invoke_json, "Q3", "--type", "Marketing")
        parsed, _ = invoke_json("pipeline", created["id"])
        assert parsed["data"]["view"] == "Marketing:choose-type"

    def test_paid_ads_choice_switches_pipeline(self, invoke_json) -> None:
        created = _create(invoke_json, "Q3", "--type", "Marketing")
        parsed, code = invoke_json("update", created["id"], "marketingType=paidAd")
        assert code == 0, parsed
        data = parsed["data"]
        assert (data["type"], data["stage"]) == ("PaidAds", "Brief")
        assert data["marketingType"] == "paidAd"
        parsed, _ = invoke_json("pipeline", created["id"])
        assert parsed["data"]["view"] == "PaidAds:Brief"

    def test_email_choice_stays_on_marketing(self, invoke_json) -> None:
        created = _create(invoke_json, "Q3", "--type", "Marketing")
        invoke_json("update", created["id"], "stage=Execution")
        parsed, _ = invoke_json("update", created["id"], "marketingType=emailMarketing")
        assert (parsed["data"]["type"], parsed["data"]["stage"]) == ("Marketing", "Strategy")
        parsed, _ = invoke_json("pipeline", created["id"])
        assert parsed["data"]["view"] == "Marketing:Strategy"


class TestReview:
    def test_submit(self, invoke_json) -> None:
        created = _create(invoke_json, "Idea", "--stage", "Concept")
        parsed, code = invoke_json("submit", created["id"])
        assert code == 0
        assert parsed["data"]["stage"] == "Submit"

    def test_reject_to_refining_with_reason(self, invoke_json) -> None:
        created = _create(invoke_json, "Idea", "--stage", "Submit")
        parsed, code = invoke_json("reject", created["id"], "--reason", "Too broad")
        assert code == 0
        assert parsed["data"]["stage"] == "Refining"
        assert parsed["data"]["lastRejectionReason"] == "Too broad"

    def test_reject_entirely(self, invoke) -> None:
        created = invoke("create", "Idea", "--quiet").output.strip()
        result = invoke("reject", created, "--entirely")
        assert result.exit_code == 0
        assert "now at Rejected" in result.output

    def test_reject_campaign_unlinks(self, invoke_json) -> None:
        created = _create(invoke_json, "Spring", "--type", "Social", "--sub-type", "campaign")
        invoke_json("update", created["id"], "stage=Approved", "convertedCampaignId=camp_1")
        parsed, code = invoke_json("reject", created["id"], "--campaign")
        assert code == 0
        assert parsed["data"]["stage"] == "Submit"
        assert parsed["data"]["convertedCampaignId"] is None

    @pytest.mark.parametrize(
        "flags", [("--entirely", "--campaign"), ("--entirely", "--reason", "no")]
    )
    def test_conflicting_flags(self, invoke_json, flags: tuple[str, ...]) -> None:
        created = _create(invoke_json, "Idea")
        parsed, code = invoke_json("reject", created["id"], *flags)
        assert code == 1
        assert parsed["error"]["code"] == "INVALID_ARGUMENT"

class TestCadence:
    def test_cadence_totals(self, invoke_json) -> None:
        created = _create(invoke_json, "Spring", "--type", "Social", "--sub-type", "campaign")
        payload = json.dumps(
            {
                "phases": [
                    {"id": "p1", "durationValue": 7, "durationUnit": "Days"},
                    {"id": "p2", "durationValue": 30, "durationUnit": "Days"},
                ],
                "channels": [
                    {
                        "channelId": "TikTok",
                        "frequencyValue": 1,
                        "frequencyUnit": "PerWeek",
                        "phaseOverrides": [
                            {"phaseId": "p2", "frequencyValue": 2, "frequencyUnit": "PerDay"}
                        ],
                    }
                ],
            }
        )
        # Payload is stored as text, so pass it JSON-encoded.
        _, code = invoke_json("update", created["id"], f"payload={json.dumps(payload)}")
        assert code == 0
        parsed, code = invoke_json("cadence", created["id"])
        assert code == 0
        assert parsed["data"]["total"] == 61
        assert parsed["data"]["by_channel"] == {"TikTok": 61}
        assert parsed["data"]["total_days"] == 37

    def test_empty_strategy(self, invoke) -> None:
        result = invoke("create", "Empty", "--type", "Social", "--sub-type", "campaign", "--quiet")
        initiative_id = result.output.strip()
        result = invoke("cadence", initiative_id)
        assert result.exit_code == 0
        assert "Total: 0 over 0 days" in result.output
