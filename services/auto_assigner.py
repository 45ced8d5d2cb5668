"""
Auto-assigner: fills missing picks when a round is finalized.

Deterministic, no randomness:
- candidates = catalogue teams - player's used teams
- sorted by name, case-insensitive
- first candidate wins, pick is flagged auto_assigned

A player who has used every team gets a forced bye: they survive the
round without a pick, no pick row is written and no team is consumed.
"""
from typing import List, Optional, Sequence, Tuple
import logging

from sqlalchemy.orm import Session

from models import Participant, Pick, Pool, Round, Team
from services.used_teams import available_team_candidates

logger = logging.getLogger(__name__)


def choose_team(candidates: Sequence[Team]) -> Optional[Team]:
    """First candidate in auto-assign order, or None for a bye."""
    return candidates[0] if candidates else None


def auto_assign_round(db: Session, pool: Pool, round_obj: Round) -> Tuple[List[Pick], List[str]]:
    """
    Create picks for every active participant without one in this round.

    Flow:
    1. Find active participants with no pick in the round
    2. For each, compute candidates through the shared used-teams ledger
    3. Assign the first candidate, or record a bye

    Args:
        db: SQLAlchemy Session (caller owns the transaction and the round lock)
        pool: owning Pool
        round_obj: open Round being finalized

    Returns:
        (newly created picks, names of players granted a bye)
    """
    picked = {
        name for (name,) in db.query(Pick.player_name).filter(Pick.round_id == round_obj.id).all()
    }
    missing = (
        db.query(Participant)
        .filter(Participant.pool_id == pool.id, Participant.is_active == True)  # noqa: E712
        .order_by(Participant.player_name)
        .all()
    )

    assigned: List[Pick] = []
    byes: List[str] = []

    for participant in missing:
        if participant.player_name in picked:
            continue

        candidates = available_team_candidates(
            db, pool.catalogue_id, pool.id, participant.player_name
        )
        team = choose_team(candidates)

        if team is None:
            logger.warning(
                f"Pool {pool.id} round {round_obj.round_number}: "
                f"{participant.player_name} has used every team, granting bye"
            )
            byes.append(participant.player_name)
            continue

        pick = Pick(
            pool_id=pool.id,
            round_id=round_obj.id,
            player_name=participant.player_name,
            team_id=team.id,
            team_name=team.name,
            result=None,
            voided=False,
            auto_assigned=True,
            carry_forward=False,
        )
        db.add(pick)
        assigned.append(pick)
        logger.info(
            f"Pool {pool.id} round {round_obj.round_number}: "
            f"auto-assigned {team.name} to {participant.player_name}"
        )

    db.flush()
    return assigned, byes
