"""
Round Manager: picks, results and closing a round

Responsibilities:
1. Pick ledger: upsert / delete picks while the round is open
2. Finalize: auto-assign missing picks and lock the round for results
3. Record results (no elimination happens here)
4. Close the round as one atomic unit: resolve every pick, update the
   participants, close the round and run the completion evaluator

Concurrency:
- every write takes the round row lock first, so pick edits, result
  entry and close on the same round are serialized
- close_round also locks the pool (round -> pool lock order)
"""
from sqlalchemy.orm import Session
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Tuple
import logging

from models import (
    Pool,
    Participant,
    Round,
    Pick,
    Team,
    PickResult,
    PoolStatus,
    RoundStatus,
)
from core.state_machine import RoundStateMachine
from core.locks import with_pool_lock, with_round_lock
from core.pool_manager import active_participant_names, complete_pool, open_next_round
from core.exceptions import (
    RoundNotFound,
    PickNotFound,
    RoundClosed,
    PoolCompleted,
    ConflictError,
    ValidationError,
)
from services.used_teams import available_team_candidates, ensure_team_available, TeamAlreadyUsed
from services.auto_assigner import auto_assign_round
from services.result_resolver import resolve
from services.unresolved_picks import settle_unresolved
from services.completion_service import Decision, CompletionDecision, evaluate_pool
from database import transactional, get_settings

logger = logging.getLogger(__name__)


class UpsertOutcome(NamedTuple):
    saved: List[Pick]
    rejected: List[Dict[str, Any]]


class FinalizeOutcome(NamedTuple):
    auto_assigned_count: int
    byes: List[str]


class CloseOutcome(NamedTuple):
    round: Round
    eliminated: List[str]
    completion: CompletionDecision
    next_round: Optional[Round]


def _locked_open_round(db: Session, round_id: int) -> Tuple[Round, Pool]:
    round_obj = with_round_lock(round_id, db).first()
    if not round_obj:
        raise RoundNotFound(round_id)
    if round_obj.status != RoundStatus.OPEN:
        raise RoundClosed(round_id)
    pool = db.query(Pool).filter(Pool.id == round_obj.pool_id).first()
    if pool.status != PoolStatus.ACTIVE:
        raise PoolCompleted(pool.id)
    return round_obj, pool


def _parse_result(value) -> PickResult:
    if isinstance(value, PickResult):
        return value
    try:
        return PickResult(value)
    except ValueError:
        allowed = ", ".join(r.value for r in PickResult)
        raise ValidationError(f"result must be one of: {allowed} (got {value!r})")


class RoundManager:
    """Round lifecycle manager"""

    @staticmethod
    def get_round(db: Session, round_id: int, operator_id: Optional[str] = None) -> Round:
        round_obj = db.query(Round).filter(Round.id == round_id).first()
        if not round_obj:
            raise RoundNotFound(round_id)
        if operator_id is not None:
            owner = db.query(Pool.operator_id).filter(Pool.id == round_obj.pool_id).scalar()
            if owner != operator_id:
                raise RoundNotFound(round_id)
        return round_obj

    @staticmethod
    def get_pick(db: Session, pick_id: int) -> Pick:
        pick = db.query(Pick).filter(Pick.id == pick_id).first()
        if not pick:
            raise PickNotFound(pick_id)
        return pick

    @staticmethod
    def get_picks(db: Session, round_id: int) -> List[Pick]:
        return (
            db.query(Pick)
            .filter(Pick.round_id == round_id)
            .order_by(Pick.player_name)
            .all()
        )

    @staticmethod
    @transactional
    def upsert_picks(db: Session, round_id: int, entries: Iterable[Tuple[str, int]]) -> UpsertOutcome:
        """
        Insert or update picks for a round, one row at a time.

        A bad row is rejected with a reason; the rest of the batch is
        still saved. A row is rejected when:
        - the player is not an active participant of the pool
        - the team does not exist or is not in the pool's catalogue
        - the player has already used the team in another round

        Saving a pick clears auto_assigned and any recorded result.

        Args:
            entries: iterable of (player_name, team_id)

        Raises:
            RoundNotFound, RoundClosed, PoolCompleted
        """
        round_obj, pool = _locked_open_round(db, round_id)

        active = set(active_participant_names(db, pool.id))
        saved: List[Pick] = []
        rejected: List[Dict[str, Any]] = []

        def reject(player_name, team_id, reason):
            logger.warning(f"Round {round_id}: rejected pick {player_name} -> {team_id}: {reason}")
            rejected.append({"player_name": player_name, "team_id": team_id, "reason": reason})

        for player_name, team_id in entries:
            if player_name not in active:
                reject(player_name, team_id, "not an active participant")
                continue

            team = db.query(Team).filter(Team.id == team_id).first()
            if not team or team.catalogue_id != pool.catalogue_id:
                reject(player_name, team_id, "team not in this pool's catalogue")
                continue

            try:
                ensure_team_available(db, pool.id, player_name, team, exclude_round_id=round_id)
            except TeamAlreadyUsed as e:
                reject(player_name, team_id, str(e))
                continue

            pick = db.query(Pick).filter(
                Pick.round_id == round_id,
                Pick.player_name == player_name
            ).first()
            if pick is None:
                pick = Pick(
                    pool_id=pool.id,
                    round_id=round_id,
                    player_name=player_name,
                    voided=False,
                    carry_forward=False,
                )
                db.add(pick)

            pick.team_id = team.id
            pick.team_name = team.name
            pick.auto_assigned = False
            pick.result = None
            db.flush()
            saved.append(pick)

        logger.info(f"Round {round_id}: saved {len(saved)} picks, rejected {len(rejected)}")
        return UpsertOutcome(saved=saved, rejected=rejected)

    @staticmethod
    @transactional
    def delete_pick(db: Session, pick_id: int) -> None:
        """
        Remove a pick from an open round. The round needs finalizing again.
        """
        pick = RoundManager.get_pick(db, pick_id)

        round_obj, _ = _locked_open_round(db, pick.round_id)
        db.delete(pick)
        round_obj.picks_locked = False
        db.flush()
        logger.info(f"Round {round_obj.id}: deleted pick {pick_id} ({pick.player_name})")

    @staticmethod
    @transactional
    def finalize_picks(db: Session, round_id: int) -> FinalizeOutcome:
        """
        Fill missing picks with the auto-assigner and lock the round for results.

        Idempotent: calling it again without a pick change in between
        assigns nothing and reports 0.

        Returns:
            FinalizeOutcome(auto_assigned_count, byes)
        """
        round_obj, pool = _locked_open_round(db, round_id)

        assigned, byes = auto_assign_round(db, pool, round_obj)
        round_obj.picks_locked = True
        db.flush()

        logger.info(
            f"Round {round_id} finalized: {len(assigned)} auto-assigned, {len(byes)} byes"
        )
        return FinalizeOutcome(auto_assigned_count=len(assigned), byes=byes)

    @staticmethod
    @transactional
    def record_results(db: Session, round_id: int, entries: Iterable[Tuple[int, Any]]) -> List[Pick]:
        """
        Write results onto picks. Nobody is eliminated until close_round.

        The batch is validated as a whole: one unknown result value or a
        pick outside this round rejects everything.

        Args:
            entries: iterable of (pick_id, result) where result is a
                PickResult or one of "win", "loss", "draw", "postponed"

        Raises:
            RoundNotFound, RoundClosed, PoolCompleted
            ConflictError: round not finalized yet
            ValidationError: bad result value or pick id
        """
        parsed = [(pick_id, _parse_result(result)) for pick_id, result in entries]

        round_obj, _ = _locked_open_round(db, round_id)
        if not round_obj.picks_locked:
            raise ConflictError(f"Round {round_id} must be finalized before results are entered")

        picks = {
            p.id: p for p in db.query(Pick).filter(
                Pick.round_id == round_id,
                Pick.voided == False  # noqa: E712
            ).all()
        }
        unknown = [pick_id for pick_id, _ in parsed if pick_id not in picks]
        if unknown:
            raise ValidationError(f"Picks not in round {round_id}: {unknown}")

        updated = []
        for pick_id, result in parsed:
            pick = picks[pick_id]
            pick.result = result
            updated.append(pick)
        db.flush()

        logger.info(f"Round {round_id}: recorded {len(updated)} results")
        return updated

    @staticmethod
    @transactional
    def close_round(
        db: Session,
        round_id: int,
        force: bool = False,
        unresolved_policy: Optional[str] = None,
        auto_advance: Optional[bool] = None,
    ) -> CloseOutcome:
        """
        Resolve every pick and close the round, all or nothing.

        Preconditions:
        1. Round is OPEN and its pool is ACTIVE
        2. Round is finalized and every pick has a result, unless force=True

        Flow:
        1. Lock round and pool
        2. Resolve each result (postponed mapped by pool config),
           eliminate losers with eliminated_in_round = this round
        3. Hand unresolved picks to the unresolved-pick policy (force only)
        4. Round OPEN -> CLOSED
        5. Completion evaluator: complete the pool, leave a wipeout
           pending for advance(), or open the next round (auto_advance)

        Players with a bye have no pick and simply survive.

        Raises:
            RoundNotFound, RoundClosed, PoolCompleted
            ConflictError: not finalized or unresolved picks without force
        """
        settings = get_settings()
        policy = unresolved_policy or settings.unresolved_pick_policy
        if auto_advance is None:
            auto_advance = settings.auto_advance

        # 1. Locks
        round_obj, _ = _locked_open_round(db, round_id)
        pool = with_pool_lock(round_obj.pool_id, db).first()

        if not round_obj.picks_locked and not force:
            raise ConflictError(f"Round {round_id} must be finalized before it can be closed")

        picks = db.query(Pick).filter(
            Pick.round_id == round_id,
            Pick.voided == False  # noqa: E712
        ).all()
        unresolved = [p for p in picks if p.result is None]
        if unresolved and not force:
            names = ", ".join(sorted(p.player_name for p in unresolved))
            raise ConflictError(f"Round {round_id} has picks without a result: {names}")

        # 2. Resolve
        participants = {
            p.player_name: p for p in db.query(Participant).filter(Participant.pool_id == pool.id).all()
        }
        eliminated: List[str] = []
        for pick in picks:
            if pick.result is None:
                continue
            resolution = resolve(pick.result, pool.postponed_outcome)
            pick.voided = resolution.voided

            participant = participants.get(pick.player_name)
            if resolution.eliminated and participant is not None and participant.is_active:
                participant.is_active = False
                participant.eliminated_in_round = round_obj.round_number
                eliminated.append(participant.player_name)

        # 3. Unresolved picks
        if unresolved:
            settle_unresolved(unresolved, policy)
        db.flush()

        # 4. Close
        RoundStateMachine.transition(round_obj, RoundStatus.CLOSED, db)
        logger.info(
            f"Pool {pool.id} round {round_obj.round_number} closed, "
            f"eliminated {len(eliminated)}: {', '.join(sorted(eliminated)) or '-'}"
        )

        # 5. Completion
        completion = evaluate_pool(pool, active_participant_names(db, pool.id))
        next_round = None

        if completion.decision == Decision.COMPLETE:
            complete_pool(db, pool, completion.winners)
        elif completion.decision == Decision.WIPEOUT_NO_WINNER:
            complete_pool(db, pool, [])
        elif completion.decision == Decision.WIPEOUT_ROLLOVER:
            pool.rollover_pending = True
            db.flush()
            logger.info(f"Pool {pool.id}: total wipeout in round {round_obj.round_number}, rollover pending")
        elif auto_advance:
            next_round = open_next_round(db, pool, round_obj)

        return CloseOutcome(
            round=round_obj,
            eliminated=sorted(eliminated),
            completion=completion,
            next_round=next_round,
        )

    @staticmethod
    def available_teams(db: Session, round_id: int, player_name: str) -> List[Team]:
        """
        Teams the player may pick in this round, in auto-assign order.
        The player's own pick in this round does not count against them.
        """
        round_obj = RoundManager.get_round(db, round_id)
        pool = db.query(Pool).filter(Pool.id == round_obj.pool_id).first()
        return available_team_candidates(
            db, pool.catalogue_id, pool.id, player_name, exclude_round_id=round_id
        )

    @staticmethod
    def pending_players(db: Session, round_id: int) -> List[str]:
        """Active participants with no pick in the round yet."""
        round_obj = RoundManager.get_round(db, round_id)
        picked = {
            name for (name,) in db.query(Pick.player_name).filter(Pick.round_id == round_id).all()
        }
        return [
            name for name in active_participant_names(db, round_obj.pool_id)
            if name not in picked
        ]
