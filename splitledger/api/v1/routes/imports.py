from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from splitledger.core.dependencies import get_current_user, get_db
from splitledger.schemas.splitwise import ImportSummary, SplitwiseImport
from splitledger.services.import_service import import_splitwise_export, import_users_from_splitwise

router = APIRouter()


@router.post("/splitwise", response_model=ImportSummary)
async def import_selected(
    data: SplitwiseImport,
    db: AsyncSession = Depends(get_db),
    user = Depends(get_current_user),
):
    return await import_users_from_splitwise(db, user.id, data.users_with_balance, data.groups)


# body is the raw export file produced by the Splitwise exporter
@router.post("/splitwise/export", response_model=ImportSummary)
async def import_export_file(
    request: Request,
    db: AsyncSession = Depends(get_db),
    user = Depends(get_current_user),
):
    return await import_splitwise_export(db, user.id, await request.body())
