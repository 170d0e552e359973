"""
Region quota checks shared by the draft and trade paths.

Everything here is a pure function of its arguments, so the draft validator and
the trade engine cannot drift apart on what "over quota" means.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from pronos.entities import Player, Region, RegionQuota


@dataclass(frozen=True)
class QuotaCheck:
    valid: bool
    region: Region | None = None
    count: int = 0
    limit: int = 0

    @property
    def excess(self) -> int:
        return max(0, self.count - self.limit)

    @classmethod
    def ok(cls) -> QuotaCheck:
        return cls(valid=True)

    def as_detail(self) -> dict[str, object]:
        return {
            "region": self.region.value if self.region else None,
            "count": self.count,
            "limit": self.limit,
            "excess": self.excess,
        }


def quota_table(quotas: Iterable[RegionQuota]) -> dict[Region, int]:
    return {q.region: q.max_players for q in quotas}


def region_counts(players: Iterable[Player]) -> Counter[Region]:
    return Counter(p.region for p in players)


def check_roster(players: Iterable[Player], quotas: Mapping[Region, int]) -> QuotaCheck:
    """
    Validate a candidate roster against a region quota table.

    Regions without a quota entry are unbounded. When several regions are over,
    the first one in Region declaration order is reported.
    """
    counts = region_counts(players)
    for region in Region:
        limit = quotas.get(region)
        if limit is None:
            continue
        count = counts.get(region, 0)
        if count > limit:
            return QuotaCheck(valid=False, region=region, count=count, limit=limit)
    return QuotaCheck.ok()


def check_addition(roster: Iterable[Player], player: Player, quotas: Mapping[Region, int]) -> QuotaCheck:
    return check_roster([*roster, player], quotas)


def simulate_swap(
    roster: Iterable[Player],
    leaving: Iterable[int],
    arriving: Iterable[Player],
) -> list[Player]:
    """Roster after removing the `leaving` player ids and adding `arriving` players."""
    leaving_ids = set(leaving)
    return [p for p in roster if p.id not in leaving_ids] + list(arriving)
