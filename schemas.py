"""
Request / response models for the operator API.
"""
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models import (
    PickResult,
    PoolStatus,
    PostponedOutcome,
    RolloverMode,
    RoundStatus,
    WinnerMode,
)


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# --- Catalogues / teams / players ---

class CatalogueCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)


class CatalogueResponse(ORMModel):
    id: int
    name: str
    team_count: int = 0


class TeamCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)


class TeamResponse(ORMModel):
    id: int
    catalogue_id: int
    name: str


class PlayerCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)


class PlayerResponse(ORMModel):
    id: int
    name: str


# --- Pools ---

class PoolCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    catalogue_id: int
    player_names: List[str] = Field(min_length=1)
    postponed_outcome: PostponedOutcome = PostponedOutcome.LOSS
    winner_mode: WinnerMode = WinnerMode.SINGLE
    max_winners: Optional[int] = Field(default=None, ge=1)
    rollover_mode: RolloverMode = RolloverMode.ROUND


class PoolResponse(ORMModel):
    id: int
    name: str
    catalogue_id: int
    status: PoolStatus
    postponed_outcome: PostponedOutcome
    winner_mode: WinnerMode
    max_winners: Optional[int]
    rollover_mode: RolloverMode
    winner_names: List[str]
    rollover_pending: bool
    current_round_id: Optional[int]


class PoolSummary(PoolResponse):
    participant_count: int
    current_round: Optional[int]


class ParticipantResponse(ORMModel):
    id: int
    player_name: str
    is_active: bool
    eliminated_in_round: Optional[int]
    joined_round: int


class RoundResponse(ORMModel):
    id: int
    pool_id: int
    round_number: int
    status: RoundStatus
    picks_locked: bool


class PoolDetailResponse(BaseModel):
    pool: PoolResponse
    participants: List[ParticipantResponse]
    rounds: List[RoundResponse]


class AddParticipants(BaseModel):
    player_names: List[str] = Field(min_length=1)


class AdvanceResponse(BaseModel):
    round: RoundResponse


# --- Picks / results ---

class PickEntry(BaseModel):
    player_name: str
    team_id: int


class PicksUpsert(BaseModel):
    picks: List[PickEntry]


class PickResponse(ORMModel):
    id: int
    round_id: int
    player_name: str
    team_id: int
    team_name: str
    result: Optional[PickResult]
    voided: bool
    auto_assigned: bool


class RejectedPick(BaseModel):
    player_name: str
    team_id: int
    reason: str


class PicksUpsertResponse(BaseModel):
    saved: List[PickResponse]
    rejected: List[RejectedPick]


class FinalizeResponse(BaseModel):
    auto_assigned_count: int
    byes: List[str]


class ResultEntry(BaseModel):
    pick_id: int
    # plain str so a bad value reaches the engine and comes back as a 400
    result: str


class ResultsSubmit(BaseModel):
    results: List[ResultEntry]


class TeamResultSubmit(BaseModel):
    result: str


class CloseRoundResponse(BaseModel):
    round: RoundResponse
    eliminated: List[str]
    decision: str
    winners: List[str]
    next_round: Optional[RoundResponse]


# --- Report ---

class TeamPickCount(BaseModel):
    team_name: str
    count: int


class TeamResultBreakdown(BaseModel):
    team_name: str
    results: Dict[str, int]


class RoundReport(BaseModel):
    round_number: int
    status: str
    active_players: int
    team_picks: Optional[List[TeamPickCount]] = None
    team_results: Optional[List[TeamResultBreakdown]] = None
    eliminated: Optional[List[str]] = None
    eliminated_count: Optional[int] = None
    through_count: Optional[int] = None


class PoolReport(BaseModel):
    pool_id: int
    name: str
    status: str
    winner_names: List[str]
    rounds: List[RoundReport]


class StatusResponse(BaseModel):
    status: str = "ok"
