"""
State machines for Pool and Round status.

Every status change goes through here so illegal transitions are
rejected in one place:

    Pool:  ACTIVE -> COMPLETED
    Round: OPEN   -> CLOSED

Both transitions happen exactly once; there is no way back.
"""
from datetime import datetime, timezone
import logging

from sqlalchemy.orm import Session

from models import Pool, PoolStatus, Round, RoundStatus
from core.exceptions import InvalidStateTransition

logger = logging.getLogger(__name__)


class PoolStateMachine:
    ALLOWED = {
        PoolStatus.ACTIVE: {PoolStatus.COMPLETED},
        PoolStatus.COMPLETED: set(),
    }

    @classmethod
    def can_transition(cls, current: PoolStatus, target: PoolStatus) -> bool:
        return target in cls.ALLOWED.get(current, set())

    @classmethod
    def transition(cls, pool: Pool, target: PoolStatus, db: Session) -> Pool:
        """
        Move a (locked) pool to the target status.

        Raises:
            InvalidStateTransition: transition not allowed from current status
        """
        if not cls.can_transition(pool.status, target):
            raise InvalidStateTransition(
                f"Pool {pool.id} cannot go from {pool.status.value} to {target.value}"
            )
        logger.info(f"Pool {pool.id}: {pool.status.value} -> {target.value}")
        pool.status = target
        db.flush()
        return pool


class RoundStateMachine:
    ALLOWED = {
        RoundStatus.OPEN: {RoundStatus.CLOSED},
        RoundStatus.CLOSED: set(),
    }

    @classmethod
    def can_transition(cls, current: RoundStatus, target: RoundStatus) -> bool:
        return target in cls.ALLOWED.get(current, set())

    @classmethod
    def transition(cls, round_obj: Round, target: RoundStatus, db: Session) -> Round:
        if not cls.can_transition(round_obj.status, target):
            raise InvalidStateTransition(
                f"Round {round_obj.id} cannot go from {round_obj.status.value} to {target.value}"
            )
        logger.info(
            f"Round {round_obj.id} (pool={round_obj.pool_id}, #{round_obj.round_number}): "
            f"{round_obj.status.value} -> {target.value}"
        )
        round_obj.status = target
        if target == RoundStatus.CLOSED:
            round_obj.closed_at = datetime.now(timezone.utc)
        db.flush()
        return round_obj
