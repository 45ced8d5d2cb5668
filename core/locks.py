"""
Concurrency helpers

Database-level row locks that serialize writers touching the same pool
or round. On PostgreSQL this is SELECT ... FOR UPDATE (pessimistic
locking); SQLite ignores the clause and serializes writers itself.
"""
from sqlalchemy.orm import Session, Query

from models import Pool, Round


def with_pool_lock(pool_id: int, db: Session) -> Query:
    """
    Lock one Pool row.

    Used when:
    - advancing to the next round (at most one next round per pool)
    - completing a pool or declaring winners
    - adding participants while the pool status must not change underneath

    Example:
        pool = with_pool_lock(pool_id, db).first()
        if not pool:
            raise PoolNotFound(pool_id)

    Notes:
        - nowait=False waits for the lock instead of failing fast
        - must run inside a transaction (see @transactional)
    """
    return db.query(Pool).filter(
        Pool.id == pool_id
    ).with_for_update(nowait=False)


def with_round_lock(round_id: int, db: Session) -> Query:
    """
    Lock one Round row.

    Every pick edit, result entry, finalize and close goes through this
    lock, so a late pick edit can never interleave with closeRound and
    leave an inconsistent used-teams view.
    """
    return db.query(Round).filter(
        Round.id == round_id
    ).with_for_update(nowait=False)
