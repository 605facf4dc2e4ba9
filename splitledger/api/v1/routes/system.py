from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from splitledger.services.system_services import (
    check_db_service,
    ledger_consistency,
    system_health,
    system_metrics,
)
from splitledger.core.dependencies import get_db

router = APIRouter()

@router.get("/health")
async def health():
    return await system_health()

@router.get("/health/db")
async def check_db():
    return await check_db_service()

@router.get("/health/ledger")
async def check_ledger(db: AsyncSession = Depends(get_db)):
    return await ledger_consistency(db)

@router.get("/metrics")
async def metrics(db: AsyncSession = Depends(get_db)):
    return await system_metrics(db)
