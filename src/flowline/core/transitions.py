"""Review transitions as partial updates.

Each helper returns the fields to hand to ``LifecycleController.apply_update``;
none of them touch the store directly.
"""

from __future__ import annotations

# Set once a submitted campaign has been turned into a live campaign record.
CAMPAIGN_LINK_FIELD = "convertedCampaignId"
REJECTION_REASON_FIELD = "lastRejectionReason"

SUBMIT_STAGE = "Submit"
REFINING_STAGE = "Refining"
REJECTED_STAGE = "Rejected"


def submit_for_review() -> dict:
    """Send the initiative to review.

    Legacy pending-review states all collapse onto ``Submit``, so that is
    what gets stored.
    """
    return {"stage": SUBMIT_STAGE}


def reject_to_refining(reason: str | None = None) -> dict:
    """Send the initiative back to Refining, recording why.

    A missing *reason* clears any reason left by an earlier rejection.
    """
    return {"stage": REFINING_STAGE, REJECTION_REASON_FIELD: reason or None}


def reject_entirely() -> dict:
    return {"stage": REJECTED_STAGE}


def reject_campaign() -> dict:
    """Return a submitted campaign to ``Submit`` and drop its campaign link.

    The link is cleared to ``None``; field-level merges cannot delete keys.
    """
    return {"stage": SUBMIT_STAGE, CAMPAIGN_LINK_FIELD: None}
