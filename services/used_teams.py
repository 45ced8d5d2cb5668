"""
Used-teams ledger.

A player's used teams are the team ids of their non-voided picks across
every round of one pool. A used team can never be picked again by that
player in that pool, manually or automatically, so both paths go through
ensure_team_available() / available_team_candidates() below.
"""
from collections import defaultdict
from typing import Dict, List, Optional, Set

from sqlalchemy.orm import Session

from models import Pick, Team
from core.exceptions import ValidationError


class TeamAlreadyUsed(ValidationError):
    """Team is already in the player's used teams"""
    def __init__(self, player_name: str, team_name: str):
        self.player_name = player_name
        self.team_name = team_name
        super().__init__(f"{player_name} has already used {team_name}")


def team_sort_key(team: Team):
    """Case-insensitive ordinal ordering, id as a stable tie-breaker."""
    return (team.name.casefold(), team.id)


def used_team_ids(
    db: Session,
    pool_id: int,
    player_name: str,
    exclude_round_id: Optional[int] = None
) -> Set[int]:
    """
    Team ids already committed by one player in one pool.

    Args:
        exclude_round_id: ignore picks of this round; used when editing
            a pick so the player's own current choice does not block a
            re-save or a change of mind

    Returns:
        set of team ids from non-voided picks
    """
    query = db.query(Pick.team_id).filter(
        Pick.pool_id == pool_id,
        Pick.player_name == player_name,
        Pick.voided == False  # noqa: E712
    )
    if exclude_round_id is not None:
        query = query.filter(Pick.round_id != exclude_round_id)
    return {team_id for (team_id,) in query.all()}


def used_teams_by_player(db: Session, pool_id: int) -> Dict[str, List[int]]:
    """
    Used teams for every player of a pool, keyed by player name.

    Team ids are listed in the order they were first committed.
    """
    rows = (
        db.query(Pick.player_name, Pick.team_id)
        .filter(Pick.pool_id == pool_id, Pick.voided == False)  # noqa: E712
        .order_by(Pick.player_name, Pick.round_id)
        .all()
    )

    ledger: Dict[str, List[int]] = defaultdict(list)
    for player_name, team_id in rows:
        if team_id not in ledger[player_name]:
            ledger[player_name].append(team_id)
    return dict(ledger)


def available_team_candidates(
    db: Session,
    catalogue_id: int,
    pool_id: int,
    player_name: str,
    exclude_round_id: Optional[int] = None
) -> List[Team]:
    """
    Catalogue teams the player may still pick, in auto-assign order.

    Returns:
        list of Team sorted by name (case-insensitive), empty when the
        player has used every team in the catalogue
    """
    used = used_team_ids(db, pool_id, player_name, exclude_round_id)
    teams = db.query(Team).filter(Team.catalogue_id == catalogue_id).all()
    return sorted((t for t in teams if t.id not in used), key=team_sort_key)


def ensure_team_available(
    db: Session,
    pool_id: int,
    player_name: str,
    team: Team,
    exclude_round_id: Optional[int] = None
) -> None:
    """
    Raise TeamAlreadyUsed if the team is in the player's used teams.

    Shared by manual pick entry and the auto-assigner.
    """
    if team.id in used_team_ids(db, pool_id, player_name, exclude_round_id):
        raise TeamAlreadyUsed(player_name, team.name)
