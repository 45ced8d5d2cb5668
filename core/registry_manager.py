"""
Registry managers: operator-owned reference data.

- CatalogueManager: team catalogues and their teams
- PlayerRegistry:   reusable players that can be put into pools

Everything is scoped by operator_id; looking up another operator's
record behaves as if it did not exist.
"""
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import List, Optional, Tuple
import logging

from models import TeamCatalogue, Team, Player, Pool, Pick
from core.exceptions import (
    CatalogueNotFound,
    TeamNotFound,
    PlayerNotFound,
    ConflictError,
    ValidationError,
)
from database import transactional

logger = logging.getLogger(__name__)


def _clean_name(name: str, what: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError(f"{what} name must not be empty")
    return cleaned


class CatalogueManager:
    """Team catalogue and team maintenance"""

    @staticmethod
    def get_catalogue(db: Session, catalogue_id: int, operator_id: Optional[str] = None) -> TeamCatalogue:
        query = db.query(TeamCatalogue).filter(TeamCatalogue.id == catalogue_id)
        if operator_id is not None:
            query = query.filter(TeamCatalogue.operator_id == operator_id)
        catalogue = query.first()
        if not catalogue:
            raise CatalogueNotFound(catalogue_id)
        return catalogue

    @staticmethod
    def list_catalogues(db: Session, operator_id: str) -> List[Tuple[TeamCatalogue, int]]:
        """
        Catalogues of one operator with their team counts, ordered by name.
        """
        return (
            db.query(TeamCatalogue, func.count(Team.id))
            .outerjoin(Team, Team.catalogue_id == TeamCatalogue.id)
            .filter(TeamCatalogue.operator_id == operator_id)
            .group_by(TeamCatalogue.id)
            .order_by(TeamCatalogue.name)
            .all()
        )

    @staticmethod
    @transactional
    def create_catalogue(db: Session, operator_id: str, name: str) -> TeamCatalogue:
        name = _clean_name(name, "Catalogue")
        exists = db.query(TeamCatalogue).filter(
            TeamCatalogue.operator_id == operator_id,
            TeamCatalogue.name == name
        ).first()
        if exists:
            raise ConflictError(f"Catalogue '{name}' already exists")

        catalogue = TeamCatalogue(operator_id=operator_id, name=name)
        db.add(catalogue)
        db.flush()
        logger.info(f"Created catalogue {catalogue.id} '{name}' for operator {operator_id}")
        return catalogue

    @staticmethod
    @transactional
    def delete_catalogue(db: Session, catalogue_id: int, operator_id: str) -> None:
        """
        Delete a catalogue and its teams.

        Raises:
            CatalogueNotFound: no such catalogue for this operator
            ConflictError: a pool is still bound to the catalogue
        """
        catalogue = CatalogueManager.get_catalogue(db, catalogue_id, operator_id)
        in_use = db.query(Pool).filter(Pool.catalogue_id == catalogue_id).count()
        if in_use:
            raise ConflictError(f"Catalogue {catalogue_id} is used by {in_use} pool(s)")

        db.query(Team).filter(Team.catalogue_id == catalogue_id).delete(synchronize_session=False)
        db.delete(catalogue)
        logger.info(f"Deleted catalogue {catalogue_id}")

    @staticmethod
    def list_teams(db: Session, catalogue_id: int, operator_id: Optional[str] = None) -> List[Team]:
        CatalogueManager.get_catalogue(db, catalogue_id, operator_id)
        teams = db.query(Team).filter(Team.catalogue_id == catalogue_id).all()
        return sorted(teams, key=lambda t: (t.name.casefold(), t.id))

    @staticmethod
    def get_team(db: Session, team_id: int, operator_id: Optional[str] = None) -> Team:
        team = db.query(Team).filter(Team.id == team_id).first()
        if not team:
            raise TeamNotFound(team_id)
        if operator_id is not None:
            try:
                CatalogueManager.get_catalogue(db, team.catalogue_id, operator_id)
            except CatalogueNotFound:
                raise TeamNotFound(team_id)
        return team

    @staticmethod
    @transactional
    def create_team(db: Session, catalogue_id: int, name: str, operator_id: Optional[str] = None) -> Team:
        CatalogueManager.get_catalogue(db, catalogue_id, operator_id)
        name = _clean_name(name, "Team")
        exists = db.query(Team).filter(Team.catalogue_id == catalogue_id, Team.name == name).first()
        if exists:
            raise ConflictError(f"Team '{name}' already exists in catalogue {catalogue_id}")

        team = Team(catalogue_id=catalogue_id, name=name)
        db.add(team)
        db.flush()
        logger.info(f"Added team {team.id} '{name}' to catalogue {catalogue_id}")
        return team

    @staticmethod
    @transactional
    def rename_team(db: Session, team_id: int, name: str, operator_id: Optional[str] = None) -> Team:
        """
        Rename a team. Existing picks keep the name they were made with.
        """
        team = CatalogueManager.get_team(db, team_id, operator_id)
        name = _clean_name(name, "Team")
        clash = db.query(Team).filter(
            Team.catalogue_id == team.catalogue_id,
            Team.name == name,
            Team.id != team_id
        ).first()
        if clash:
            raise ConflictError(f"Team '{name}' already exists in catalogue {team.catalogue_id}")

        team.name = name
        db.flush()
        return team

    @staticmethod
    @transactional
    def delete_team(db: Session, team_id: int, operator_id: Optional[str] = None) -> None:
        """
        Hard-delete a team that no pick has ever referenced.

        Raises:
            ConflictError: the team appears in at least one pick
        """
        team = CatalogueManager.get_team(db, team_id, operator_id)
        if db.query(Pick).filter(Pick.team_id == team_id).first():
            raise ConflictError(f"Team '{team.name}' has been picked and cannot be deleted")
        db.delete(team)
        logger.info(f"Deleted team {team_id}")


class PlayerRegistry:
    """Reusable named players"""

    @staticmethod
    def list_players(db: Session, operator_id: str) -> List[Player]:
        return (
            db.query(Player)
            .filter(Player.operator_id == operator_id)
            .order_by(Player.name)
            .all()
        )

    @staticmethod
    @transactional
    def create_player(db: Session, operator_id: str, name: str) -> Player:
        name = _clean_name(name, "Player")
        exists = db.query(Player).filter(
            Player.operator_id == operator_id,
            Player.name == name
        ).first()
        if exists:
            raise ConflictError(f"Player '{name}' already exists")

        player = Player(operator_id=operator_id, name=name)
        db.add(player)
        db.flush()
        logger.info(f"Registered player {player.id} '{name}' for operator {operator_id}")
        return player

    @staticmethod
    @transactional
    def delete_player(db: Session, player_id: int, operator_id: str) -> None:
        """
        Remove a player from the registry. Pool memberships are kept by
        name, so existing pools are unaffected.
        """
        player = db.query(Player).filter(
            Player.id == player_id,
            Player.operator_id == operator_id
        ).first()
        if not player:
            raise PlayerNotFound(player_id)
        db.delete(player)
        logger.info(f"Deleted player {player_id}")

    @staticmethod
    def resolve_names(db: Session, operator_id: str, names: List[str]) -> List[str]:
        """
        Check a roster against the registry.

        Returns:
            cleaned names in the given order

        Raises:
            ValidationError: empty name, duplicate name or unknown player
        """
        cleaned = [(n or "").strip() for n in names]
        if any(not n for n in cleaned):
            raise ValidationError("Player names must not be empty")

        duplicates = sorted({n for n in cleaned if cleaned.count(n) > 1})
        if duplicates:
            raise ValidationError(f"Duplicate players in roster: {', '.join(duplicates)}")

        known = {
            name for (name,) in db.query(Player.name).filter(
                Player.operator_id == operator_id,
                Player.name.in_(cleaned)
            ).all()
        }
        unknown = [n for n in cleaned if n not in known]
        if unknown:
            raise ValidationError(f"Unknown players: {', '.join(unknown)}")
        return cleaned
