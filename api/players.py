"""
Player API Endpoints

Responsibilities:
1. Maintain the operator's reusable player registry
2. Registered players are what pools and add-participants resolve against
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
import logging

from database import get_db
from schemas import PlayerCreate, PlayerResponse, StatusResponse
from core.registry_manager import PlayerRegistry
from core.exceptions import PoolEngineException
from api.dependencies import get_operator_id, to_http_exception

router = APIRouter(prefix="/api/players", tags=["players"])
logger = logging.getLogger(__name__)


@router.get("", response_model=List[PlayerResponse])
def list_players(operator_id: str = Depends(get_operator_id), db: Session = Depends(get_db)):
    return PlayerRegistry.list_players(db, operator_id)


@router.post("", response_model=PlayerResponse, status_code=201)
def create_player(
    player_data: PlayerCreate,
    operator_id: str = Depends(get_operator_id),
    db: Session = Depends(get_db)
):
    """
    Register a player (operator endpoint)

    Preconditions:
    - name not already registered for this operator
    """
    try:
        player = PlayerRegistry.create_player(db, operator_id, player_data.name)
        logger.info(f"Player {player.id} ({player.name}) registered by {operator_id}")
        return player

    except PoolEngineException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to create player: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.delete("/{player_id}", response_model=StatusResponse)
def delete_player(
    player_id: int,
    operator_id: str = Depends(get_operator_id),
    db: Session = Depends(get_db)
):
    try:
        PlayerRegistry.delete_player(db, player_id, operator_id)
        return StatusResponse()
    except PoolEngineException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to delete player {player_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
