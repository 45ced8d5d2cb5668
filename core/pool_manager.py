"""
Pool Manager: full lifecycle of an elimination pool

Responsibilities:
1. Create a pool (config + roster + round 1)
2. Add participants while the pool is active
3. Advance to the next round, including the wipeout rollover branch
4. Complete a pool / declare winners
5. Delete a pool
6. Query pools

Rules:
- all status changes go through the state machines
- the pool row is locked before any change that depends on its status
- the pool always points at its latest round (current_round_id), so the
  "one next round" guarantee is one lock plus one unique constraint
"""
from enum import Enum
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import List, Optional, Tuple, Type
import logging

from models import (
    Pool,
    Participant,
    Pick,
    Round,
    PoolStatus,
    RoundStatus,
    PostponedOutcome,
    WinnerMode,
    RolloverMode,
)
from core.state_machine import PoolStateMachine
from core.locks import with_pool_lock
from core.registry_manager import CatalogueManager, PlayerRegistry
from core.exceptions import (
    PoolNotFound,
    CatalogueNotFound,
    ConflictError,
    PoolCompleted,
    ValidationError,
)
from services.rollover import get_rollover_strategy
from services.unresolved_picks import carry_forward_picks
from database import transactional, get_settings

logger = logging.getLogger(__name__)


def _parse_enum(enum_cls: Type[Enum], value, field: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"{field} must be one of: {allowed} (got {value!r})")


def active_participant_names(db: Session, pool_id: int) -> List[str]:
    return [
        name for (name,) in db.query(Participant.player_name).filter(
            Participant.pool_id == pool_id,
            Participant.is_active == True  # noqa: E712
        ).order_by(Participant.player_name).all()
    ]


def open_next_round(db: Session, pool: Pool, previous_round: Round) -> Round:
    """
    Create round n+1 (OPEN) and point the pool at it.

    Caller must hold the pool lock inside a transaction. A racing
    duplicate hits uq_round_pool_number and surfaces as ConflictError
    through @transactional.
    """
    next_round = Round(
        pool_id=pool.id,
        round_number=previous_round.round_number + 1,
        status=RoundStatus.OPEN,
        picks_locked=False,
    )
    db.add(next_round)
    db.flush()

    pool.current_round_id = next_round.id
    carried = carry_forward_picks(db, previous_round, next_round)
    db.flush()

    logger.info(
        f"Pool {pool.id}: opened round {next_round.round_number}"
        + (f" with {len(carried)} carried picks" if carried else "")
    )
    return next_round


def complete_pool(db: Session, pool: Pool, winners: List[str]) -> Pool:
    PoolStateMachine.transition(pool, PoolStatus.COMPLETED, db)
    pool.winner_names = list(winners)
    db.flush()
    if winners:
        logger.info(f"Pool {pool.id} completed, winners: {', '.join(winners)}")
    else:
        logger.info(f"Pool {pool.id} completed with no winner")
    return pool


class PoolManager:
    """Pool lifecycle manager"""

    @staticmethod
    @transactional
    def create_pool(
        db: Session,
        operator_id: str,
        name: str,
        catalogue_id: int,
        player_names: List[str],
        postponed_outcome=PostponedOutcome.LOSS,
        winner_mode=WinnerMode.SINGLE,
        max_winners: Optional[int] = None,
        rollover_mode=RolloverMode.ROUND,
    ) -> Pool:
        """
        Create a pool with its roster and open round 1.

        Flow:
        1. Validate name, catalogue, roster and config
        2. Create the Pool (ACTIVE)
        3. Create one Participant per player
        4. Open round 1 and point the pool at it

        Raises:
            ValidationError: empty name/roster, unknown catalogue or
                players, config outside the enumerated values
        """
        # 1. Validation
        name = (name or "").strip()
        if not name:
            raise ValidationError("Pool name must not be empty")

        try:
            CatalogueManager.get_catalogue(db, catalogue_id, operator_id)
        except CatalogueNotFound:
            raise ValidationError(f"Unknown catalogue {catalogue_id}")

        if not player_names:
            raise ValidationError("A pool needs at least one player")
        roster = PlayerRegistry.resolve_names(db, operator_id, player_names)

        postponed_outcome = _parse_enum(PostponedOutcome, postponed_outcome, "postponed_outcome")
        winner_mode = _parse_enum(WinnerMode, winner_mode, "winner_mode")
        rollover_mode = _parse_enum(RolloverMode, rollover_mode, "rollover_mode")

        if winner_mode == WinnerMode.MULTIPLE:
            if max_winners is None or max_winners < 1:
                raise ValidationError("max_winners must be at least 1 when winner_mode is multiple")
        else:
            max_winners = None

        # 2. Pool
        pool = Pool(
            operator_id=operator_id,
            name=name,
            catalogue_id=catalogue_id,
            status=PoolStatus.ACTIVE,
            postponed_outcome=postponed_outcome,
            winner_mode=winner_mode,
            max_winners=max_winners,
            rollover_mode=rollover_mode,
            winner_names=[],
            rollover_pending=False,
        )
        db.add(pool)
        db.flush()

        # 3. Roster
        for player_name in roster:
            db.add(Participant(
                pool_id=pool.id,
                player_name=player_name,
                is_active=True,
                eliminated_in_round=None,
                joined_round=1,
            ))

        # 4. Round 1
        first_round = Round(pool_id=pool.id, round_number=1, status=RoundStatus.OPEN, picks_locked=False)
        db.add(first_round)
        db.flush()
        pool.current_round_id = first_round.id

        logger.info(
            f"Created pool {pool.id} '{name}' with {len(roster)} players "
            f"(winner_mode={winner_mode.value}, postponed={postponed_outcome.value}, "
            f"rollover={rollover_mode.value})"
        )
        return pool

    @staticmethod
    @transactional
    def add_participants(db: Session, pool_id: int, player_names: List[str]) -> List[Participant]:
        """
        Add players to an active pool from the current round onward.

        Newcomers start with no used teams and no picks in earlier rounds.
        If the open round was already finalized its lock is cleared so a
        new finalize can fill the newcomers' picks.

        Raises:
            PoolNotFound: pool does not exist
            PoolCompleted: pool is completed
            ValidationError: empty list, unknown or duplicate players
        """
        pool = with_pool_lock(pool_id, db).first()
        if not pool:
            raise PoolNotFound(pool_id)
        if pool.status != PoolStatus.ACTIVE:
            raise PoolCompleted(pool_id)
        if not player_names:
            raise ValidationError("No players to add")

        names = PlayerRegistry.resolve_names(db, pool.operator_id, player_names)
        existing = {
            n for (n,) in db.query(Participant.player_name).filter(Participant.pool_id == pool_id).all()
        }
        already = [n for n in names if n in existing]
        if already:
            raise ValidationError(f"Already in pool: {', '.join(already)}")

        current = db.query(Round).filter(Round.id == pool.current_round_id).first()
        if current.status == RoundStatus.OPEN:
            joined_round = current.round_number
            current.picks_locked = False
        else:
            joined_round = current.round_number + 1

        added = []
        for player_name in names:
            participant = Participant(
                pool_id=pool_id,
                player_name=player_name,
                is_active=True,
                eliminated_in_round=None,
                joined_round=joined_round,
            )
            db.add(participant)
            added.append(participant)
        db.flush()

        logger.info(f"Pool {pool_id}: added {len(added)} players from round {joined_round}")
        return added

    @staticmethod
    @transactional
    def delete_pool(db: Session, pool_id: int, operator_id: Optional[str] = None) -> None:
        """
        Irreversibly delete a pool with its rounds, picks and participants.
        """
        pool = with_pool_lock(pool_id, db).first()
        if not pool or (operator_id is not None and pool.operator_id != operator_id):
            raise PoolNotFound(pool_id)

        pool.current_round_id = None
        db.flush()

        db.query(Pick).filter(Pick.pool_id == pool_id).delete(synchronize_session=False)
        db.query(Round).filter(Round.pool_id == pool_id).delete(synchronize_session=False)
        db.query(Participant).filter(Participant.pool_id == pool_id).delete(synchronize_session=False)
        db.delete(pool)
        logger.info(f"Deleted pool {pool_id}")

    @staticmethod
    @transactional
    def advance(db: Session, pool_id: int, rollover_strategy: Optional[str] = None) -> Round:
        """
        Open the next round of a pool.

        Preconditions:
        1. Pool exists and is ACTIVE
        2. Current round is CLOSED (an open round means the pool has
           already advanced)

        If the closed round eliminated everyone (rollover_mode=round) the
        pool carries rollover_pending, and the configured rollover strategy
        restores that cohort before the next round opens. Players added
        after the wipeout join alongside the restored cohort.

        Raises:
            PoolNotFound, PoolCompleted
            ConflictError: current round still open, or nobody left to play
        """
        pool = with_pool_lock(pool_id, db).first()
        if not pool:
            raise PoolNotFound(pool_id)
        if pool.status != PoolStatus.ACTIVE:
            raise PoolCompleted(pool_id)

        current = db.query(Round).filter(Round.id == pool.current_round_id).first()
        if current.status == RoundStatus.OPEN:
            raise ConflictError(
                f"Pool {pool_id} already has open round {current.round_number}"
            )

        if pool.rollover_pending:
            strategy_name = rollover_strategy or get_settings().rollover_round_strategy
            strategy = get_rollover_strategy(strategy_name)
            strategy(db, pool, current)
            pool.rollover_pending = False
        elif not active_participant_names(db, pool_id):
            raise ConflictError(f"Pool {pool_id} has no active participants")

        return open_next_round(db, pool, current)

    @staticmethod
    @transactional
    def declare_winners(db: Session, pool_id: int) -> Pool:
        """
        End an active pool early: every active participant is a joint winner.

        Raises:
            PoolNotFound, PoolCompleted
            ConflictError: current round still open, a wipeout rollover is
                pending, or nobody active
        """
        pool = with_pool_lock(pool_id, db).first()
        if not pool:
            raise PoolNotFound(pool_id)
        if pool.status != PoolStatus.ACTIVE:
            raise PoolCompleted(pool_id)

        current = db.query(Round).filter(Round.id == pool.current_round_id).first()
        if current.status == RoundStatus.OPEN:
            raise ConflictError(f"Close round {current.round_number} before declaring winners")
        if pool.rollover_pending:
            raise ConflictError(
                f"Round {current.round_number} was a wipeout; advance the pool to roll it over"
            )

        winners = active_participant_names(db, pool_id)
        if not winners:
            raise ConflictError("No active players to declare as winners")

        return complete_pool(db, pool, winners)

    @staticmethod
    def get_pool(db: Session, pool_id: int, operator_id: Optional[str] = None) -> Pool:
        query = db.query(Pool).filter(Pool.id == pool_id)
        if operator_id is not None:
            query = query.filter(Pool.operator_id == operator_id)
        pool = query.first()
        if not pool:
            raise PoolNotFound(pool_id)
        return pool

    @staticmethod
    def get_pool_detail(
        db: Session,
        pool_id: int,
        operator_id: Optional[str] = None
    ) -> Tuple[Pool, List[Participant], List[Round]]:
        pool = PoolManager.get_pool(db, pool_id, operator_id)
        participants = (
            db.query(Participant)
            .filter(Participant.pool_id == pool_id)
            .order_by(Participant.player_name)
            .all()
        )
        rounds = (
            db.query(Round)
            .filter(Round.pool_id == pool_id)
            .order_by(Round.round_number)
            .all()
        )
        return pool, participants, rounds

    @staticmethod
    def list_pools(db: Session, operator_id: str) -> List[Tuple[Pool, int, Optional[int]]]:
        """
        Pools of one operator, newest first.

        Returns:
            list of (pool, participant count, current round number)
        """
        participant_counts = dict(
            db.query(Participant.pool_id, func.count(Participant.id))
            .group_by(Participant.pool_id)
            .all()
        )
        rows = (
            db.query(Pool, Round.round_number)
            .outerjoin(Round, Round.id == Pool.current_round_id)
            .filter(Pool.operator_id == operator_id)
            .order_by(Pool.id.desc())
            .all()
        )
        return [(pool, participant_counts.get(pool.id, 0), number) for pool, number in rows]
