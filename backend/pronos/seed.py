from __future__ import annotations

import argparse
import asyncio
import csv
import uuid
from collections.abc import Iterable, Mapping, Sequence
from datetime import timedelta
from pathlib import Path

from pronos.entities import Game, Player, Region, RegionQuota, Team, utcnow
from pronos.repositories.base import LeagueRepository

_TRUE = {"1", "true", "yes", "y"}


def _opt_int(value: str | None) -> int | None:
    value = (value or "").strip()
    return int(value) if value else None


def read_csv(path: Path) -> list[dict[str, str]]:
    with path.open(newline="", encoding="utf-8") as f:
        return list(csv.DictReader(f))


def parse_quota(text: str) -> tuple[Region, int]:
    """Parse "EU=3" into (Region.EU, 3)."""
    region, _, limit = text.partition("=")
    try:
        return Region(region.strip().upper()), int(limit)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid quota {text!r}, expected REGION=N") from e


async def load_players(repo: LeagueRepository, rows: Iterable[Mapping[str, str]]) -> int:
    """
    Insert players from CSV rows (nickname, region, season, rank, tranche, locked).
    Players already present for the same season and nickname are skipped.
    """
    known: dict[int, set[str]] = {}
    inserted = 0
    async with repo.transaction():
        for row in rows:
            season = int(row["season"])
            if season not in known:
                known[season] = {p.nickname.lower() for p in await repo.players_for_season(season)}
            nickname = row["nickname"].strip()
            if nickname.lower() in known[season]:
                continue
            await repo.add_player(
                Player(
                    nickname=nickname,
                    region=Region(row["region"].strip().upper()),
                    season=season,
                    locked=(row.get("locked") or "").strip().lower() in _TRUE,
                    rank=_opt_int(row.get("rank")),
                    tranche=(row.get("tranche") or "").strip() or None,
                )
            )
            known[season].add(nickname.lower())
            inserted += 1
    return inserted


async def create_game(
    repo: LeagueRepository,
    *,
    name: str,
    creator_id: uuid.UUID,
    season: int,
    quotas: Sequence[tuple[Region, int]] = (),
    teams: Iterable[Mapping[str, str]] = (),
    draft_rounds: int | None = None,
    max_trades_per_team: int = 5,
) -> Game:
    """Create a game with its region quotas and teams. Team rows: name, owner_id."""
    async with repo.transaction():
        game = await repo.add_game(
            Game(
                name=name,
                creator_id=creator_id,
                season=season,
                draft_rounds=draft_rounds,
                max_trades_per_team=max_trades_per_team,
            )
        )
        for region, limit in quotas:
            await repo.add_quota(RegionQuota(game_id=game.id, region=region, max_players=limit))
        joined = utcnow()
        for i, row in enumerate(teams):
            await repo.add_team(
                Team(
                    name=row["name"].strip(),
                    owner_id=uuid.UUID(row["owner_id"].strip()),
                    game_id=game.id,
                    season=season,
                    # Keep CSV order as join order even when rows share a timestamp resolution.
                    joined_at=joined + timedelta(microseconds=i),
                )
            )
    return game


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed players, a game, its quotas and teams from CSV.")
    parser.add_argument("--players", type=Path, help="CSV with nickname,region,season[,rank,tranche,locked]")
    parser.add_argument("--game", type=str, default=None, help="Create a game with this name")
    parser.add_argument("--creator", type=uuid.UUID, default=None, help="Creator user id for --game")
    parser.add_argument("--season", type=int, default=None, help="Season for --game")
    parser.add_argument("--quota", type=parse_quota, action="append", default=[], help="Region quota, e.g. EU=3")
    parser.add_argument("--teams", type=Path, default=None, help="CSV with name,owner_id (join order = row order)")
    parser.add_argument("--draft-rounds", type=int, default=None, help="Override the number of draft rounds")
    parser.add_argument("--max-trades", type=int, default=5, help="Completed-trade cap per team (default: 5)")
    args = parser.parse_args()

    if args.game and (args.creator is None or args.season is None):
        parser.error("--game requires --creator and --season")
    if not args.players and not args.game:
        parser.error("nothing to do: pass --players and/or --game")

    async def _run() -> None:
        from pronos.config import settings
        from pronos.database import repository_scope

        print(f"[seed] using DATABASE_URL={settings.database_url}")
        async with repository_scope() as repo:
            if args.players:
                n = await load_players(repo, read_csv(args.players))
                print(f"Inserted players: {n}")
            if args.game:
                game = await create_game(
                    repo,
                    name=args.game,
                    creator_id=args.creator,
                    season=args.season,
                    quotas=args.quota,
                    teams=read_csv(args.teams) if args.teams else (),
                    draft_rounds=args.draft_rounds,
                    max_trades_per_team=args.max_trades,
                )
                print(f"Created game id={game.id} name={game.name!r}")

    asyncio.run(_run())


if __name__ == "__main__":
    main()
