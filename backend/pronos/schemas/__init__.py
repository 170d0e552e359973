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
from pronos.schemas.trade import TradeCounter, TradeCreate, TradeOut, TradeResultOut, TradeStatisticsOut

__all__ = [
    "DraftFinish",
    "DraftOut",
    "DraftPickOut",
    "DraftStart",
    "ErrorOut",
    "ParticipantOut",
    "PickCreate",
    "PickResultOut",
    "PlayerOut",
    "TimeoutOut",
    "TradeCounter",
    "TradeCreate",
    "TradeOut",
    "TradeResultOut",
    "TradeStatisticsOut",
    "TurnOut",
]
