"""Tests for stage normalization."""

from __future__ import annotations

from hypothesis import given, strategies as st

from flowline.core.stages import META_STAGES, STAGE_ALIASES, is_alias, normalize_stage

stage_strings = st.one_of(
    st.sampled_from(sorted(STAGE_ALIASES) + ["Submit", "Concept", "Approved", ""]),
    st.text(max_size=20),
)


class TestNormalizeStage:
    def test_review_aliases_collapse_to_submit(self) -> None:
        for alias in ("ChangeRequested", "PendingReview", "Review"):
            assert normalize_stage(alias) == "Submit"

    def test_unknown_stage_passes_through(self) -> None:
        assert normalize_stage("Studio") == "Studio"
        assert normalize_stage("not-a-stage") == "not-a-stage"

    def test_none_and_empty_become_empty(self) -> None:
        assert normalize_stage(None) == ""
        assert normalize_stage("") == ""

    def test_meta_stages_are_canonical(self) -> None:
        for stage in META_STAGES:
            assert normalize_stage(stage) == stage

    def test_is_alias(self) -> None:
        assert is_alias("PendingReview")
        assert not is_alias("Submit")

    @given(stage_strings)
    def test_idempotent(self, raw: str) -> None:
        once = normalize_stage(raw)
        assert normalize_stage(once) == once

    @given(stage_strings)
    def test_never_returns_alias(self, raw: str) -> None:
        assert not is_alias(normalize_stage(raw))
