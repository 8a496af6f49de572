from datetime import datetime
from enum import Enum
from typing import Optional, Set

from composer.domain.invariants.campaign import parse_timestamp
from composer.domain.invariants.exceptions import InvalidWindow
from composer.domain.types import CampaignWindow


class CampaignState(str, Enum):
    INACTIVE = "inactive"
    SCHEDULED = "scheduled"
    LIVE = "live"
    ENDED = "ended"


# Persisted transitions only: LIVE and ENDED are derived from the clock.
ALLOWED_CAMPAIGN_TRANSITIONS: dict[CampaignState, Set[CampaignState]] = {
    CampaignState.INACTIVE: {CampaignState.SCHEDULED, CampaignState.LIVE},
    CampaignState.SCHEDULED: {CampaignState.INACTIVE},
    CampaignState.LIVE: {CampaignState.INACTIVE},
    CampaignState.ENDED: {CampaignState.INACTIVE},
}


def classify(
    window: Optional[CampaignWindow],
    now: datetime,
    *,
    is_campaign: bool = True,
) -> CampaignState:
    """
    Derive the campaign state of a category at ``now``.

    The window is half-open: live from starts_at (inclusive) until ends_at
    (exclusive). An unset window classifies as INACTIVE.
    """
    if not is_campaign or window is None:
        return CampaignState.INACTIVE

    starts_at = parse_timestamp(window.starts_at)
    ends_at = parse_timestamp(window.ends_at)
    if starts_at is None or ends_at is None:
        return CampaignState.INACTIVE

    now = parse_timestamp(now)

    if now < starts_at:
        return CampaignState.SCHEDULED
    if now < ends_at:
        return CampaignState.LIVE
    return CampaignState.ENDED


def countdown_visible(window: Optional[CampaignWindow], now: datetime, *, is_campaign: bool = True) -> bool:
    if window is None or not window.show_countdown:
        return False
    return classify(window, now, is_campaign=is_campaign) in (
        CampaignState.SCHEDULED,
        CampaignState.LIVE,
    )


def assert_campaign_transition(*, from_state: CampaignState, to_state: CampaignState) -> None:
    """
    Guards campaign switches. Turning a campaign on must land in SCHEDULED
    or LIVE; a window that is already over cannot be switched on.
    """
    allowed = ALLOWED_CAMPAIGN_TRANSITIONS.get(from_state, set())

    if to_state not in allowed:
        raise InvalidWindow(
            f"Illegal campaign transition: {from_state.value} → {to_state.value}"
        )
