"""
Rollover strategies for a total wipeout under rollover_mode=round.

When every remaining participant is eliminated in the same round the
cohort is kept for continued play. How exactly is still provisional, so
the behaviour is a named strategy picked by configuration
(Settings.rollover_round_strategy) instead of being hard-coded:

- "reinstate": everyone eliminated in the wiped round is active again
  and a fresh round starts; the wiped round's picks still count as used.
- "replay":    same cohort is reinstated and the wiped round's picks are
  voided, so those teams are free again and the round is effectively
  played again under the next round number.

Both strategies only touch participants whose eliminated_in_round is the
wiped round; this is the one place eliminated_in_round may be cleared.
"""
from typing import Callable, Dict, List
import logging

from sqlalchemy.orm import Session

from models import Participant, Pick, Pool, Round
from core.exceptions import ValidationError

logger = logging.getLogger(__name__)


def _reinstate_cohort(db: Session, pool: Pool, wiped_round: Round) -> List[str]:
    cohort = (
        db.query(Participant)
        .filter(
            Participant.pool_id == pool.id,
            Participant.eliminated_in_round == wiped_round.round_number
        )
        .order_by(Participant.player_name)
        .all()
    )
    for participant in cohort:
        participant.is_active = True
        participant.eliminated_in_round = None
    db.flush()
    return [p.player_name for p in cohort]


def reinstate_strategy(db: Session, pool: Pool, wiped_round: Round) -> List[str]:
    reinstated = _reinstate_cohort(db, pool, wiped_round)
    logger.info(
        f"Pool {pool.id}: wipeout in round {wiped_round.round_number}, "
        f"reinstated {len(reinstated)} players"
    )
    return reinstated


def replay_strategy(db: Session, pool: Pool, wiped_round: Round) -> List[str]:
    reinstated = _reinstate_cohort(db, pool, wiped_round)
    voided = (
        db.query(Pick)
        .filter(Pick.round_id == wiped_round.id, Pick.voided == False)  # noqa: E712
        .update({Pick.voided: True}, synchronize_session="fetch")
    )
    db.flush()
    logger.info(
        f"Pool {pool.id}: wipeout in round {wiped_round.round_number}, "
        f"reinstated {len(reinstated)} players and voided {voided} picks for replay"
    )
    return reinstated


ROLLOVER_STRATEGIES: Dict[str, Callable[[Session, Pool, Round], List[str]]] = {
    "reinstate": reinstate_strategy,
    "replay": replay_strategy,
}


def get_rollover_strategy(name: str) -> Callable[[Session, Pool, Round], List[str]]:
    try:
        return ROLLOVER_STRATEGIES[name]
    except KeyError:
        raise ValidationError(
            f"Unknown rollover strategy '{name}', expected one of {sorted(ROLLOVER_STRATEGIES)}"
        )
