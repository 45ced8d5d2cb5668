"""
Catalogue & Team API Endpoints

Operator maintenance of team catalogues. A team that has been picked
in any pool can be renamed but never deleted.
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
import logging

from database import get_db
from schemas import (
    CatalogueCreate,
    CatalogueResponse,
    TeamCreate,
    TeamResponse,
    StatusResponse,
)
from core.registry_manager import CatalogueManager
from core.exceptions import PoolEngineException
from api.dependencies import get_operator_id, to_http_exception

router = APIRouter(prefix="/api", tags=["catalogues"])
logger = logging.getLogger(__name__)


@router.get("/catalogues", response_model=List[CatalogueResponse])
def list_catalogues(operator_id: str = Depends(get_operator_id), db: Session = Depends(get_db)):
    rows = CatalogueManager.list_catalogues(db, operator_id)
    return [
        CatalogueResponse(id=catalogue.id, name=catalogue.name, team_count=count)
        for catalogue, count in rows
    ]


@router.post("/catalogues", response_model=CatalogueResponse, status_code=201)
def create_catalogue(
    data: CatalogueCreate,
    operator_id: str = Depends(get_operator_id),
    db: Session = Depends(get_db)
):
    try:
        catalogue = CatalogueManager.create_catalogue(db, operator_id, data.name)
        return CatalogueResponse(id=catalogue.id, name=catalogue.name, team_count=0)
    except PoolEngineException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to create catalogue: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.delete("/catalogues/{catalogue_id}", response_model=StatusResponse)
def delete_catalogue(
    catalogue_id: int,
    operator_id: str = Depends(get_operator_id),
    db: Session = Depends(get_db)
):
    try:
        CatalogueManager.delete_catalogue(db, catalogue_id, operator_id)
        return StatusResponse()
    except PoolEngineException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to delete catalogue {catalogue_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/catalogues/{catalogue_id}/teams", response_model=List[TeamResponse])
def list_teams(
    catalogue_id: int,
    operator_id: str = Depends(get_operator_id),
    db: Session = Depends(get_db)
):
    try:
        return CatalogueManager.list_teams(db, catalogue_id, operator_id)
    except PoolEngineException as e:
        raise to_http_exception(e)


@router.post("/catalogues/{catalogue_id}/teams", response_model=TeamResponse, status_code=201)
def create_team(
    catalogue_id: int,
    data: TeamCreate,
    operator_id: str = Depends(get_operator_id),
    db: Session = Depends(get_db)
):
    try:
        return CatalogueManager.create_team(db, catalogue_id, data.name, operator_id)
    except PoolEngineException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to create team: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.put("/teams/{team_id}", response_model=TeamResponse)
def rename_team(
    team_id: int,
    data: TeamCreate,
    operator_id: str = Depends(get_operator_id),
    db: Session = Depends(get_db)
):
    try:
        return CatalogueManager.rename_team(db, team_id, data.name, operator_id)
    except PoolEngineException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to rename team {team_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.delete("/teams/{team_id}", response_model=StatusResponse)
def delete_team(
    team_id: int,
    operator_id: str = Depends(get_operator_id),
    db: Session = Depends(get_db)
):
    try:
        CatalogueManager.delete_team(db, team_id, operator_id)
        return StatusResponse()
    except PoolEngineException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to delete team {team_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
