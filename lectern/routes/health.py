"""Liveness, configured providers and database connectivity."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from lectern.database import get_db
from lectern.services.ai.providers import available_keys

router = APIRouter()


@router.get("")
async def health():
    """Liveness plus the providers that have a credential configured."""
    return {"status": "healthy", "providers": sorted(str(p) for p in available_keys())}


@router.get("/db")
async def db_health(db: AsyncSession = Depends(get_db)):
    try:
        await db.scalar(text("SELECT 1"))
    except Exception as e:
        raise HTTPException(503, f"Database health check failed: {e}") from e
    return {"status": "healthy"}
