from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status

from pronos.entities import Trade, TradeStatus
from pronos.routers.deps import get_trade_engine
from pronos.schemas.trade import TradeCounter, TradeCreate, TradeOut, TradeResultOut, TradeStatisticsOut
from pronos.services.auth import get_acting_user_id
from pronos.services.trade_engine import TradeOutcome, TradeTransactionEngine

router = APIRouter(prefix="/trades", tags=["trades"])


def _result(outcome: TradeOutcome) -> TradeResultOut:
    return TradeResultOut(
        trade=TradeOut.model_validate(outcome.trade),
        superseded=TradeOut.model_validate(outcome.superseded) if outcome.superseded else None,
        events=outcome.events,
    )


@router.post("", response_model=TradeResultOut, status_code=status.HTTP_201_CREATED)
async def propose_trade(
    payload: TradeCreate,
    engine: TradeTransactionEngine = Depends(get_trade_engine),
    user_id: uuid.UUID = Depends(get_acting_user_id),
) -> TradeResultOut:
    outcome = await engine.propose(
        payload.from_team_id,
        payload.to_team_id,
        payload.offered_player_ids,
        payload.requested_player_ids,
        user_id,
    )
    return _result(outcome)


@router.get("/teams/{team_id}", response_model=list[TradeOut])
async def team_trade_history(
    team_id: int,
    pending: bool = Query(default=False, description="Only trades still waiting for an answer"),
    engine: TradeTransactionEngine = Depends(get_trade_engine),
) -> list[Trade]:
    if pending:
        return await engine.pending_trades_for_team(team_id)
    return await engine.team_trade_history(team_id)


@router.get("/games/{game_id}", response_model=list[TradeOut])
async def game_trades(
    game_id: int,
    trade_status: TradeStatus | None = Query(default=None, alias="status"),
    engine: TradeTransactionEngine = Depends(get_trade_engine),
) -> list[Trade]:
    return await engine.game_trades(game_id, trade_status)


@router.get("/games/{game_id}/stats", response_model=TradeStatisticsOut)
async def game_trade_statistics(
    game_id: int,
    engine: TradeTransactionEngine = Depends(get_trade_engine),
) -> TradeStatisticsOut:
    return TradeStatisticsOut.model_validate(await engine.game_trade_statistics(game_id))


@router.get("/{trade_id}", response_model=TradeOut)
async def get_trade(trade_id: int, engine: TradeTransactionEngine = Depends(get_trade_engine)) -> Trade:
    return await engine.get_trade(trade_id)


@router.post("/{trade_id}/accept", response_model=TradeResultOut)
async def accept_trade(
    trade_id: int,
    engine: TradeTransactionEngine = Depends(get_trade_engine),
    user_id: uuid.UUID = Depends(get_acting_user_id),
) -> TradeResultOut:
    return _result(await engine.accept(trade_id, user_id))


@router.post("/{trade_id}/reject", response_model=TradeResultOut)
async def reject_trade(
    trade_id: int,
    engine: TradeTransactionEngine = Depends(get_trade_engine),
    user_id: uuid.UUID = Depends(get_acting_user_id),
) -> TradeResultOut:
    return _result(await engine.reject(trade_id, user_id))


@router.post("/{trade_id}/cancel", response_model=TradeResultOut)
async def cancel_trade(
    trade_id: int,
    engine: TradeTransactionEngine = Depends(get_trade_engine),
    user_id: uuid.UUID = Depends(get_acting_user_id),
) -> TradeResultOut:
    return _result(await engine.cancel(trade_id, user_id))


@router.post("/{trade_id}/counter", response_model=TradeResultOut, status_code=status.HTTP_201_CREATED)
async def counter_trade(
    trade_id: int,
    payload: TradeCounter,
    engine: TradeTransactionEngine = Depends(get_trade_engine),
    user_id: uuid.UUID = Depends(get_acting_user_id),
) -> TradeResultOut:
    outcome = await engine.counter(trade_id, user_id, payload.offered_player_ids, payload.requested_player_ids)
    return _result(outcome)
