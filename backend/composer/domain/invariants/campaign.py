from datetime import datetime, timezone

from dateutil.parser import isoparse

from composer.domain.types import CampaignWindow, Result
from .exceptions import IncompleteWindow, InvalidWindow


def parse_timestamp(value):
    """
    Timestamps are opaque ISO instants. Naive values are read as UTC so that
    naive and aware instants remain comparable; no other conversion is done.
    """
    if value is None or value == "":
        return None

    ts = value if isinstance(value, datetime) else isoparse(str(value))
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def validate_campaign_window(window, *, require_complete=False):
    """
    Check a campaign window without raising.

    - both timestamps present: starts_at must be strictly before ends_at
    - require_complete (creation, switching a campaign on): both present
    """
    if window is None:
        window = CampaignWindow()

    try:
        starts_at = parse_timestamp(window.starts_at)
        ends_at = parse_timestamp(window.ends_at)
    except (ValueError, OverflowError) as exc:
        return Result.failure(InvalidWindow(f"Unreadable campaign timestamp: {exc}"))

    if starts_at is not None and ends_at is not None:
        if starts_at >= ends_at:
            return Result.failure(
                InvalidWindow("Campaign start time must be before end time")
            )
        return Result.success(window)

    if require_complete:
        return Result.failure(
            IncompleteWindow("Campaign requires start and end time")
        )

    return Result.success(window)


def assert_campaign_window(window, *, require_complete=False):
    validate_campaign_window(window, require_complete=require_complete).unwrap()
