from __future__ import annotations

from fastapi import Depends

from pronos.database import get_repository
from pronos.repositories.base import LeagueRepository
from pronos.services.draft_engine import DraftTurnEngine
from pronos.services.trade_engine import TradeTransactionEngine


def get_draft_engine(repo: LeagueRepository = Depends(get_repository)) -> DraftTurnEngine:
    return DraftTurnEngine(repo)


def get_trade_engine(repo: LeagueRepository = Depends(get_repository)) -> TradeTransactionEngine:
    return TradeTransactionEngine(repo)
