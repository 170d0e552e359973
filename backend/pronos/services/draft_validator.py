from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from pronos.entities import Draft, DraftStatus, Participant, Player, Region
from pronos.services.errors import ConflictError, LeagueError, ValidationError
from pronos.services.quota import check_addition


class PickRejection(StrEnum):
    DRAFT_NOT_IN_PROGRESS = "draft_not_in_progress"
    NOT_YOUR_TURN = "not_your_turn"
    PLAYER_ALREADY_DRAFTED = "player_already_drafted"
    PLAYER_ALREADY_ROSTERED = "player_already_rostered"
    PLAYER_LOCKED = "player_locked"
    PLAYER_WRONG_SEASON = "player_wrong_season"
    QUOTA_EXCEEDED = "quota_exceeded"


# Rejections that reflect turn/state mismatches rather than an illegal player choice.
_CONFLICTS = {PickRejection.DRAFT_NOT_IN_PROGRESS, PickRejection.NOT_YOUR_TURN}


@dataclass(frozen=True)
class PickCheck:
    rejection: PickRejection | None = None
    detail: dict[str, Any] = field(default_factory=dict)

    @property
    def valid(self) -> bool:
        return self.rejection is None

    def to_error(self) -> LeagueError:
        if self.rejection is None:
            raise ValueError("a valid pick has no error")
        cls = ConflictError if self.rejection in _CONFLICTS else ValidationError
        return cls(self.rejection.value, **self.detail)

    def raise_for_rejection(self) -> None:
        if self.rejection is not None:
            raise self.to_error()


def check_pick(
    draft: Draft,
    participant: Participant,
    player: Player,
    *,
    drafted_player_ids: Collection[int],
    rostered_player_ids: Collection[int],
    roster: Iterable[Player],
    quotas: Mapping[Region, int],
    season: int | None = None,
) -> PickCheck:
    """
    Decide whether `participant` may draft `player` right now.

    Checks run in a fixed order and the first failure wins. Nothing is mutated.
    """
    if draft.status is not DraftStatus.IN_PROGRESS:
        return PickCheck(
            PickRejection.DRAFT_NOT_IN_PROGRESS,
            {"draft_id": draft.id, "status": draft.status.value},
        )

    on_clock = draft.participant_on_clock()
    if on_clock is None or on_clock.id != participant.id:
        return PickCheck(
            PickRejection.NOT_YOUR_TURN,
            {
                "draft_id": draft.id,
                "participant_id": participant.id,
                "expected_participant_id": on_clock.id if on_clock else None,
                "pick_number": draft.current_pick,
            },
        )

    if player.id in drafted_player_ids:
        return PickCheck(PickRejection.PLAYER_ALREADY_DRAFTED, {"player_id": player.id, "draft_id": draft.id})
    if player.id in rostered_player_ids:
        return PickCheck(PickRejection.PLAYER_ALREADY_ROSTERED, {"player_id": player.id})

    if player.locked:
        return PickCheck(PickRejection.PLAYER_LOCKED, {"player_id": player.id})
    if season is not None and player.season != season:
        return PickCheck(
            PickRejection.PLAYER_WRONG_SEASON,
            {"player_id": player.id, "player_season": player.season, "season": season},
        )

    quota = check_addition(roster, player, quotas)
    if not quota.valid:
        return PickCheck(
            PickRejection.QUOTA_EXCEEDED,
            {"player_id": player.id, "team_id": participant.team_id, **quota.as_detail()},
        )

    return PickCheck()
