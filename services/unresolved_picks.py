"""
Unresolved-pick policy for force-closed rounds.

A force close leaves participants whose pick has no result active. What
happens to that pick is decided here and nowhere else
(Settings.unresolved_pick_policy):

- "discard": the pick is voided, its team is free again
- "carry":   the pick is voided in the closed round and flagged
             carry_forward; the next round re-creates it with the same
             team (see carry_forward_picks)

Either way the team is counted at most once in the used teams.
"""
from typing import List
import logging

from sqlalchemy.orm import Session

from models import Participant, Pick, Round
from core.exceptions import ValidationError

logger = logging.getLogger(__name__)

POLICIES = ("discard", "carry")


def settle_unresolved(picks: List[Pick], policy: str) -> None:
    """
    Apply the policy to picks that are still unresolved at close time.

    Raises:
        ValidationError: unknown policy name
    """
    if policy not in POLICIES:
        raise ValidationError(
            f"Unknown unresolved pick policy '{policy}', expected one of {list(POLICIES)}"
        )

    for pick in picks:
        pick.voided = True
        pick.carry_forward = policy == "carry"
        logger.info(
            f"Unresolved pick {pick.id} ({pick.player_name}: {pick.team_name}) "
            f"{'carried forward' if pick.carry_forward else 'discarded'}"
        )


def carry_forward_picks(db: Session, previous_round: Round, next_round: Round) -> List[Pick]:
    """
    Re-create carried picks of previous_round in next_round.

    Only players still active get their pick carried; the team stays
    reserved because the voided original no longer counts.
    """
    carried = (
        db.query(Pick)
        .filter(Pick.round_id == previous_round.id, Pick.carry_forward == True)  # noqa: E712
        .all()
    )
    active = {
        name for (name,) in db.query(Participant.player_name).filter(
            Participant.pool_id == previous_round.pool_id,
            Participant.is_active == True  # noqa: E712
        ).all()
    }

    created: List[Pick] = []
    for pick in carried:
        if pick.player_name not in active:
            continue
        new_pick = Pick(
            pool_id=pick.pool_id,
            round_id=next_round.id,
            player_name=pick.player_name,
            team_id=pick.team_id,
            team_name=pick.team_name,
            result=None,
            voided=False,
            auto_assigned=pick.auto_assigned,
            carry_forward=False,
        )
        db.add(new_pick)
        created.append(new_pick)

    db.flush()
    return created
