"""
Pool report service.

Builds the public, read-only per-round summary of a pool so a venue
screen can show progress without exposing who picked what:

- open rounds:   team -> number of picks
- closed rounds: team -> result breakdown, eliminated / through counts
"""
from collections import Counter
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from models import Participant, Pick, Pool, Round, RoundStatus
from core.exceptions import PoolNotFound
from services.result_resolver import resolve


def active_at_round_start(participants: List[Participant], round_number: int) -> List[Participant]:
    """
    Participants who were in play when the round started: joined on or
    before it and not eliminated in an earlier round.
    """
    return [
        p for p in participants
        if p.joined_round <= round_number
        and (p.eliminated_in_round is None or p.eliminated_in_round >= round_number)
    ]


def build_pool_report(db: Session, pool_id: int) -> Dict[str, Any]:
    pool = db.query(Pool).filter(Pool.id == pool_id).first()
    if not pool:
        raise PoolNotFound(pool_id)

    participants = db.query(Participant).filter(Participant.pool_id == pool_id).all()
    rounds = (
        db.query(Round)
        .filter(Round.pool_id == pool_id)
        .order_by(Round.round_number)
        .all()
    )

    round_reports: List[Dict[str, Any]] = []
    for round_obj in rounds:
        picks = db.query(Pick).filter(Pick.round_id == round_obj.id).all()
        starters = active_at_round_start(participants, round_obj.round_number)

        entry: Dict[str, Any] = {
            "round_number": round_obj.round_number,
            "status": round_obj.status.value,
            "active_players": len(starters),
        }

        if round_obj.status == RoundStatus.OPEN:
            counts = Counter(p.team_name for p in picks if not p.voided)
            entry["team_picks"] = [
                {"team_name": name, "count": count}
                for name, count in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0].casefold()))
            ]
        else:
            # Closed rounds are reported from their recorded results, so a
            # wipeout stays visible after a rollover reinstates the cohort
            # or voids its picks for replay.
            breakdown: Dict[str, Counter] = {}
            for pick in picks:
                result = pick.result.value if pick.result else "unresolved"
                breakdown.setdefault(pick.team_name, Counter())[result] += 1
            eliminated = sorted(
                p.player_name for p in picks
                if p.result is not None and resolve(p.result, pool.postponed_outcome).eliminated
            )
            entry["team_results"] = [
                {"team_name": name, "results": dict(results)}
                for name, results in sorted(breakdown.items(), key=lambda kv: kv[0].casefold())
            ]
            entry["eliminated"] = eliminated
            entry["eliminated_count"] = len(eliminated)
            entry["through_count"] = len(starters) - len(eliminated)

        round_reports.append(entry)

    return {
        "pool_id": pool.id,
        "name": pool.name,
        "status": pool.status.value,
        "winner_names": list(pool.winner_names or []),
        "rounds": round_reports,
    }
