from __future__ import annotations

import uuid

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from pronos.entities import DraftPick, Player, Region
from pronos.routers.deps import get_draft_engine
from pronos.schemas.draft import (
    DraftFinish,
    DraftOut,
    DraftPickOut,
    DraftStart,
    ParticipantOut,
    PickCreate,
    PickResultOut,
    TimeoutOut,
    TurnOut,
)
from pronos.schemas.event import ErrorOut
from pronos.schemas.player import PlayerOut
from pronos.services.auth import get_acting_user_id
from pronos.services.draft_engine import DraftTurnEngine

router = APIRouter(prefix="/drafts", tags=["drafts"])


@router.post("", response_model=DraftOut, status_code=status.HTTP_201_CREATED)
async def start_draft(
    payload: DraftStart,
    engine: DraftTurnEngine = Depends(get_draft_engine),
    user_id: uuid.UUID = Depends(get_acting_user_id),
) -> DraftOut:
    return DraftOut.model_validate(await engine.start_draft(payload.game_id, user_id))


@router.get("/by-game/{game_id}", response_model=DraftOut)
async def get_draft_for_game(game_id: int, engine: DraftTurnEngine = Depends(get_draft_engine)) -> DraftOut:
    draft = await engine.get_draft_for_game(game_id)
    if draft is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Draft not started for this game")
    return DraftOut.model_validate(draft)


@router.get("/{draft_id}", response_model=DraftOut)
async def get_draft(draft_id: int, engine: DraftTurnEngine = Depends(get_draft_engine)) -> DraftOut:
    return DraftOut.model_validate(await engine.get_draft(draft_id))


@router.get("/{draft_id}/picks", response_model=list[DraftPickOut])
async def list_picks(draft_id: int, engine: DraftTurnEngine = Depends(get_draft_engine)) -> list[DraftPick]:
    return await engine.list_picks(draft_id)


@router.get("/{draft_id}/turn", response_model=TurnOut)
async def current_turn(draft_id: int, engine: DraftTurnEngine = Depends(get_draft_engine)) -> TurnOut:
    draft = await engine.get_draft(draft_id)
    participant = engine.current_participant(draft)
    return TurnOut(
        draft_id=draft.id,
        status=draft.status.value,
        pick_number=draft.current_pick,
        round=draft.current_round,
        participant=ParticipantOut.model_validate(participant) if participant else None,
        turn_started_at=draft.turn_started_at,
        deadline=await engine.turn_deadline(draft),
    )


@router.get("/{draft_id}/available", response_model=list[PlayerOut])
async def available_players(
    draft_id: int,
    team_id: int | None = Query(default=None, description="Only players this team can take without breaking quota"),
    region: Region | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    engine: DraftTurnEngine = Depends(get_draft_engine),
) -> list[Player]:
    players = await engine.available_players(draft_id, team_id=team_id, region=region)
    return players[:limit]


@router.post("/{draft_id}/picks", response_model=PickResultOut, status_code=status.HTTP_201_CREATED)
async def make_pick(
    draft_id: int,
    payload: PickCreate,
    engine: DraftTurnEngine = Depends(get_draft_engine),
    user_id: uuid.UUID = Depends(get_acting_user_id),
) -> PickResultOut:
    outcome = await engine.execute_pick(draft_id, user_id, payload.player_id)
    return PickResultOut(
        draft=DraftOut.model_validate(outcome.draft),
        pick=DraftPickOut.model_validate(outcome.pick),
        events=outcome.events,
    )


@router.post("/{draft_id}/pause", response_model=DraftOut)
async def pause_draft(
    draft_id: int,
    engine: DraftTurnEngine = Depends(get_draft_engine),
    user_id: uuid.UUID = Depends(get_acting_user_id),
) -> DraftOut:
    return DraftOut.model_validate(await engine.pause(draft_id, user_id))


@router.post("/{draft_id}/resume", response_model=DraftOut)
async def resume_draft(
    draft_id: int,
    engine: DraftTurnEngine = Depends(get_draft_engine),
    user_id: uuid.UUID = Depends(get_acting_user_id),
) -> DraftOut:
    return DraftOut.model_validate(await engine.resume(draft_id, user_id))


@router.post("/{draft_id}/finish", response_model=DraftOut)
async def finish_draft(
    draft_id: int,
    payload: DraftFinish | None = Body(default=None),
    engine: DraftTurnEngine = Depends(get_draft_engine),
    user_id: uuid.UUID = Depends(get_acting_user_id),
) -> DraftOut:
    draft = await engine.finish(draft_id, user_id, force=bool(payload and payload.force))
    return DraftOut.model_validate(draft)


@router.post("/{draft_id}/timeout", response_model=TimeoutOut)
async def expire_turn(draft_id: int, engine: DraftTurnEngine = Depends(get_draft_engine)) -> TimeoutOut:
    """Manual tick of the draft clock, for deployments without the background scheduler."""
    outcome = await engine.handle_timeout(draft_id)
    return TimeoutOut(
        draft_id=outcome.draft_id,
        timed_out=outcome.timed_out,
        pick=DraftPickOut.model_validate(outcome.pick) if outcome.pick else None,
        error=ErrorOut.from_error(outcome.error) if outcome.error else None,
        events=outcome.events,
    )
