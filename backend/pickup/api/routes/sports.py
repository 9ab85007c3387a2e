"""
Sport catalogue endpoint.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from pickup.db.session import get_db
from pickup.schemas.game import SportResponse
from pickup.services.game_service import list_sports

router = APIRouter(prefix="/sports", tags=["Sports"])


@router.get("/", response_model=list[SportResponse])
async def list_sports_endpoint(db: AsyncSession = Depends(get_db)):
    return await list_sports(db)
