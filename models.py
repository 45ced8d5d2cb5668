"""
SQLAlchemy models for the managed elimination pool.

Catalogues, teams and players are operator-scoped reference data.
A Pool binds one catalogue to a roster of Participants and owns its
Rounds; every Round owns at most one Pick per participant.
"""
import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    JSON,
    String,
    UniqueConstraint,
)

from database import Base


def _utcnow():
    return datetime.now(timezone.utc)


# ============ Enums ============

class PoolStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


class PostponedOutcome(str, enum.Enum):
    WIN = "win"
    LOSS = "loss"


class WinnerMode(str, enum.Enum):
    SINGLE = "single"
    MULTIPLE = "multiple"


class RolloverMode(str, enum.Enum):
    ROUND = "round"
    POOL = "pool"


class RoundStatus(str, enum.Enum):
    OPEN = "open"
    CLOSED = "closed"


class PickResult(str, enum.Enum):
    WIN = "win"
    LOSS = "loss"
    DRAW = "draw"
    POSTPONED = "postponed"


# ============ Reference data ============

class TeamCatalogue(Base):
    __tablename__ = "team_catalogues"
    __table_args__ = (
        UniqueConstraint("operator_id", "name", name="uq_catalogue_operator_name"),
    )

    id = Column(Integer, primary_key=True)
    operator_id = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class Team(Base):
    __tablename__ = "teams"
    __table_args__ = (
        UniqueConstraint("catalogue_id", "name", name="uq_team_catalogue_name"),
    )

    id = Column(Integer, primary_key=True)
    catalogue_id = Column(Integer, ForeignKey("team_catalogues.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class Player(Base):
    __tablename__ = "players"
    __table_args__ = (
        UniqueConstraint("operator_id", "name", name="uq_player_operator_name"),
    )

    id = Column(Integer, primary_key=True)
    operator_id = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


# ============ Pool ============

class Pool(Base):
    __tablename__ = "pools"

    id = Column(Integer, primary_key=True)
    operator_id = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    catalogue_id = Column(Integer, ForeignKey("team_catalogues.id"), nullable=False)
    status = Column(Enum(PoolStatus), nullable=False, default=PoolStatus.ACTIVE)

    postponed_outcome = Column(Enum(PostponedOutcome), nullable=False)
    winner_mode = Column(Enum(WinnerMode), nullable=False)
    max_winners = Column(Integer, nullable=True)  # only meaningful for MULTIPLE
    rollover_mode = Column(Enum(RolloverMode), nullable=False)
    winner_names = Column(JSON, nullable=False, default=list)
    # Set by a wipeout under rollover_mode=round until advance() applies the strategy
    rollover_pending = Column(Boolean, nullable=False, default=False)

    # Points at the latest round (open, or closed while an advance is pending)
    current_round_id = Column(
        Integer,
        ForeignKey("rounds.id", use_alter=True, name="fk_pools_current_round"),
        nullable=True
    )
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class Participant(Base):
    __tablename__ = "participants"
    __table_args__ = (
        UniqueConstraint("pool_id", "player_name", name="uq_participant_pool_player"),
    )

    id = Column(Integer, primary_key=True)
    pool_id = Column(Integer, ForeignKey("pools.id"), nullable=False, index=True)
    player_name = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    eliminated_in_round = Column(Integer, nullable=True)
    joined_round = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class Round(Base):
    __tablename__ = "rounds"
    __table_args__ = (
        UniqueConstraint("pool_id", "round_number", name="uq_round_pool_number"),
    )

    id = Column(Integer, primary_key=True)
    pool_id = Column(Integer, ForeignKey("pools.id"), nullable=False, index=True)
    round_number = Column(Integer, nullable=False)
    status = Column(Enum(RoundStatus), nullable=False, default=RoundStatus.OPEN)
    picks_locked = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    closed_at = Column(DateTime(timezone=True), nullable=True)


class Pick(Base):
    __tablename__ = "picks"
    __table_args__ = (
        UniqueConstraint("round_id", "player_name", name="uq_pick_round_player"),
    )

    id = Column(Integer, primary_key=True)
    pool_id = Column(Integer, ForeignKey("pools.id"), nullable=False, index=True)
    round_id = Column(Integer, ForeignKey("rounds.id"), nullable=False, index=True)
    player_name = Column(String(255), nullable=False)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=False)
    team_name = Column(String(255), nullable=False)
    result = Column(Enum(PickResult), nullable=True)
    voided = Column(Boolean, nullable=False, default=False)
    auto_assigned = Column(Boolean, nullable=False, default=False)
    carry_forward = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
