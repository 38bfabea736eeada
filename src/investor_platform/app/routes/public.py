"""Public (anonymous) property browsing."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from investor_platform.domain.schemas import PropertyResponse
from investor_platform.infra.database import get_db
from investor_platform.services.property_service import PropertyService

router = APIRouter(prefix="/api/public", tags=["public"])


@router.get("/properties", response_model=list[PropertyResponse])
async def list_properties(db: AsyncSession = Depends(get_db)):
    return await PropertyService(db).list_public()


@router.get("/properties/{property_id}", response_model=PropertyResponse)
async def get_property(property_id: str, db: AsyncSession = Depends(get_db)):
    return await PropertyService(db).get_public(property_id)
