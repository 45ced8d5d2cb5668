"""
Pool API Endpoints

Responsibilities:
1. Create / list / get / delete pools
2. Used-teams ledger per pool
3. Add participants, advance, declare winners
4. Public read-only report (no operator header needed)
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import Dict, List
import logging

from database import get_db
from schemas import (
    PoolCreate,
    PoolResponse,
    PoolSummary,
    PoolDetailResponse,
    ParticipantResponse,
    RoundResponse,
    AddParticipants,
    AdvanceResponse,
    PoolReport,
    StatusResponse,
)
from core.pool_manager import PoolManager
from core.exceptions import PoolEngineException
from services.used_teams import used_teams_by_player
from services.report_service import build_pool_report
from api.dependencies import get_operator_id, to_http_exception

router = APIRouter(prefix="/api/pools", tags=["pools"])
logger = logging.getLogger(__name__)


def _detail(db: Session, pool_id: int, operator_id: str) -> PoolDetailResponse:
    pool, participants, rounds = PoolManager.get_pool_detail(db, pool_id, operator_id)
    return PoolDetailResponse(
        pool=PoolResponse.model_validate(pool),
        participants=[ParticipantResponse.model_validate(p) for p in participants],
        rounds=[RoundResponse.model_validate(r) for r in rounds],
    )


@router.get("", response_model=List[PoolSummary])
def list_pools(operator_id: str = Depends(get_operator_id), db: Session = Depends(get_db)):
    return [
        PoolSummary(
            **PoolResponse.model_validate(pool).model_dump(),
            participant_count=count,
            current_round=current_round,
        )
        for pool, count, current_round in PoolManager.list_pools(db, operator_id)
    ]


@router.post("", response_model=PoolDetailResponse, status_code=201)
def create_pool(
    data: PoolCreate,
    operator_id: str = Depends(get_operator_id),
    db: Session = Depends(get_db)
):
    """
    Create a pool (operator endpoint)

    Flow:
    1. Validate catalogue, roster and config
    2. Create pool, participants and round 1
    3. Return the full pool detail
    """
    try:
        pool = PoolManager.create_pool(
            db,
            operator_id,
            data.name,
            data.catalogue_id,
            data.player_names,
            postponed_outcome=data.postponed_outcome,
            winner_mode=data.winner_mode,
            max_winners=data.max_winners,
            rollover_mode=data.rollover_mode,
        )
        return _detail(db, pool.id, operator_id)

    except PoolEngineException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to create pool: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{pool_id}", response_model=PoolDetailResponse)
def get_pool(pool_id: int, operator_id: str = Depends(get_operator_id), db: Session = Depends(get_db)):
    try:
        return _detail(db, pool_id, operator_id)
    except PoolEngineException as e:
        raise to_http_exception(e)


@router.delete("/{pool_id}", response_model=StatusResponse)
def delete_pool(pool_id: int, operator_id: str = Depends(get_operator_id), db: Session = Depends(get_db)):
    try:
        PoolManager.delete_pool(db, pool_id, operator_id)
        return StatusResponse()
    except PoolEngineException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to delete pool {pool_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{pool_id}/used-teams", response_model=Dict[str, List[int]])
def get_used_teams(pool_id: int, operator_id: str = Depends(get_operator_id), db: Session = Depends(get_db)):
    """
    Used teams per player name -> list of team ids
    """
    try:
        PoolManager.get_pool(db, pool_id, operator_id)
        return used_teams_by_player(db, pool_id)
    except PoolEngineException as e:
        raise to_http_exception(e)


@router.post("/{pool_id}/participants", response_model=List[ParticipantResponse], status_code=201)
def add_participants(
    pool_id: int,
    data: AddParticipants,
    operator_id: str = Depends(get_operator_id),
    db: Session = Depends(get_db)
):
    try:
        PoolManager.get_pool(db, pool_id, operator_id)
        return PoolManager.add_participants(db, pool_id, data.player_names)
    except PoolEngineException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to add participants to pool {pool_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{pool_id}/advance", response_model=AdvanceResponse)
def advance_pool(pool_id: int, operator_id: str = Depends(get_operator_id), db: Session = Depends(get_db)):
    """
    Open the next round (operator endpoint)

    Preconditions:
    - current round closed, pool active

    On a total wipeout under rollover_mode=round the configured rollover
    strategy restores the cohort first.
    """
    try:
        PoolManager.get_pool(db, pool_id, operator_id)
        next_round = PoolManager.advance(db, pool_id)
        return AdvanceResponse(round=RoundResponse.model_validate(next_round))
    except PoolEngineException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to advance pool {pool_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{pool_id}/declare-winners", response_model=PoolResponse)
def declare_winners(pool_id: int, operator_id: str = Depends(get_operator_id), db: Session = Depends(get_db)):
    try:
        PoolManager.get_pool(db, pool_id, operator_id)
        return PoolManager.declare_winners(db, pool_id)
    except PoolEngineException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to declare winners for pool {pool_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{pool_id}/report", response_model=PoolReport)
def get_report(pool_id: int, db: Session = Depends(get_db)):
    """
    Public per-round report (no operator identity required)
    """
    try:
        return build_pool_report(db, pool_id)
    except PoolEngineException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to build report for pool {pool_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
