from pronos.models.base import Base
from pronos.models.draft import Draft, DraftParticipant
from pronos.models.draft_pick import DraftPick
from pronos.models.game import Game
from pronos.models.player import Player
from pronos.models.region_quota import RegionQuota
from pronos.models.roster_slot import RosterSlot
from pronos.models.team import Team
from pronos.models.trade import Trade, TradePlayer

__all__ = [
    "Base",
    "Draft",
    "DraftParticipant",
    "DraftPick",
    "Game",
    "Player",
    "RegionQuota",
    "RosterSlot",
    "Team",
    "Trade",
    "TradePlayer",
]
