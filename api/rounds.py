"""
Round API Endpoints

Points:
1. All business logic lives in RoundManager; endpoints only translate
2. Picks are edited per row, results are a flat pick-id/result list
3. Team-grouped result entry is expanded here into that flat list
4. State is pulled: the console re-reads picks / pool detail after writes
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List
import logging

from database import get_db
from schemas import (
    PicksUpsert,
    PicksUpsertResponse,
    PickResponse,
    RejectedPick,
    FinalizeResponse,
    ResultsSubmit,
    TeamResultSubmit,
    CloseRoundResponse,
    RoundResponse,
    TeamResponse,
    StatusResponse,
)
from core.round_manager import RoundManager
from core.exceptions import PoolEngineException, ValidationError
from api.dependencies import get_operator_id, to_http_exception

router = APIRouter(prefix="/api", tags=["rounds"])
logger = logging.getLogger(__name__)


@router.get("/rounds/{round_id}/picks", response_model=List[PickResponse])
def get_picks(round_id: int, operator_id: str = Depends(get_operator_id), db: Session = Depends(get_db)):
    try:
        RoundManager.get_round(db, round_id, operator_id)
        return RoundManager.get_picks(db, round_id)
    except PoolEngineException as e:
        raise to_http_exception(e)


@router.put("/rounds/{round_id}/picks", response_model=PicksUpsertResponse)
def upsert_picks(
    round_id: int,
    data: PicksUpsert,
    operator_id: str = Depends(get_operator_id),
    db: Session = Depends(get_db)
):
    """
    Save picks for a round (operator endpoint)

    Each row is validated on its own; rejected rows come back with a
    reason and do not stop the others from being saved.
    """
    try:
        RoundManager.get_round(db, round_id, operator_id)
        outcome = RoundManager.upsert_picks(
            db, round_id, [(p.player_name, p.team_id) for p in data.picks]
        )
        return PicksUpsertResponse(
            saved=[PickResponse.model_validate(p) for p in outcome.saved],
            rejected=[RejectedPick(**r) for r in outcome.rejected],
        )
    except PoolEngineException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to save picks for round {round_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.delete("/picks/{pick_id}", response_model=StatusResponse)
def delete_pick(pick_id: int, operator_id: str = Depends(get_operator_id), db: Session = Depends(get_db)):
    try:
        pick = RoundManager.get_pick(db, pick_id)
        RoundManager.get_round(db, pick.round_id, operator_id)
        RoundManager.delete_pick(db, pick_id)
        return StatusResponse()
    except PoolEngineException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to delete pick {pick_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/rounds/{round_id}/finalize", response_model=FinalizeResponse)
def finalize_picks(round_id: int, operator_id: str = Depends(get_operator_id), db: Session = Depends(get_db)):
    """
    Lock picks and auto-assign the missing ones (operator endpoint)

    Returns:
        - auto_assigned_count: picks created by this call (0 on a repeat)
        - byes: players who have used every team
    """
    try:
        RoundManager.get_round(db, round_id, operator_id)
        outcome = RoundManager.finalize_picks(db, round_id)
        return FinalizeResponse(auto_assigned_count=outcome.auto_assigned_count, byes=outcome.byes)
    except PoolEngineException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to finalize round {round_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/rounds/{round_id}/results", response_model=List[PickResponse])
def record_results(
    round_id: int,
    data: ResultsSubmit,
    operator_id: str = Depends(get_operator_id),
    db: Session = Depends(get_db)
):
    try:
        RoundManager.get_round(db, round_id, operator_id)
        return RoundManager.record_results(
            db, round_id, [(r.pick_id, r.result) for r in data.results]
        )
    except PoolEngineException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to record results for round {round_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.put("/rounds/{round_id}/teams/{team_id}/result", response_model=List[PickResponse])
def record_team_result(
    round_id: int,
    team_id: int,
    data: TeamResultSubmit,
    operator_id: str = Depends(get_operator_id),
    db: Session = Depends(get_db)
):
    """
    Apply one result to every pick of a team in this round.

    Convenience for the console: expands into the flat pick-id/result
    list that record_results takes.
    """
    try:
        RoundManager.get_round(db, round_id, operator_id)
        pick_ids = [
            p.id for p in RoundManager.get_picks(db, round_id)
            if p.team_id == team_id and not p.voided
        ]
        if not pick_ids:
            raise ValidationError(f"No picks for team {team_id} in round {round_id}")
        return RoundManager.record_results(db, round_id, [(pid, data.result) for pid in pick_ids])
    except PoolEngineException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to record team result for round {round_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/rounds/{round_id}/close", response_model=CloseRoundResponse)
def close_round(
    round_id: int,
    force: bool = Query(False),
    operator_id: str = Depends(get_operator_id),
    db: Session = Depends(get_db)
):
    """
    Close a round (operator endpoint)

    Eliminations, the round status change and the completion decision
    are committed together or not at all.
    """
    try:
        RoundManager.get_round(db, round_id, operator_id)
        outcome = RoundManager.close_round(db, round_id, force=force)
        return CloseRoundResponse(
            round=RoundResponse.model_validate(outcome.round),
            eliminated=outcome.eliminated,
            decision=outcome.completion.decision.value,
            winners=outcome.completion.winners,
            next_round=RoundResponse.model_validate(outcome.next_round) if outcome.next_round else None,
        )
    except PoolEngineException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to close round {round_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/rounds/{round_id}/available-teams", response_model=List[TeamResponse])
def available_teams(
    round_id: int,
    player_name: str = Query(...),
    operator_id: str = Depends(get_operator_id),
    db: Session = Depends(get_db)
):
    try:
        RoundManager.get_round(db, round_id, operator_id)
        return RoundManager.available_teams(db, round_id, player_name)
    except PoolEngineException as e:
        raise to_http_exception(e)


@router.get("/rounds/{round_id}/pending-players", response_model=List[str])
def pending_players(round_id: int, operator_id: str = Depends(get_operator_id), db: Session = Depends(get_db)):
    try:
        RoundManager.get_round(db, round_id, operator_id)
        return RoundManager.pending_players(db, round_id)
    except PoolEngineException as e:
        raise to_http_exception(e)
