from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from splitledger.core.dependencies import get_current_user, get_db
from splitledger.schemas.expense import ExpenseOut, SettleUpCreate
from splitledger.services.expense_services import settle_up

router = APIRouter()


@router.post("/", response_model=ExpenseOut)
async def record_settlement(
    data: SettleUpCreate,
    db: AsyncSession = Depends(get_db),
    user = Depends(get_current_user),
):
    return await settle_up(db, user.id, data)
