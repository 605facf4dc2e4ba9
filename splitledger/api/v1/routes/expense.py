from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from splitledger.core.dependencies import get_current_user, get_db
from splitledger.schemas.expense import ExpenseCreate, ExpenseDetailOut, ExpenseOut
from splitledger.services.expense_services import (
    create_expense,
    delete_expense,
    edit_expense,
    get_all_expenses,
    get_expense_details,
)

router = APIRouter()

@router.post("/", response_model=ExpenseOut)
async def add_expense(data: ExpenseCreate, db: AsyncSession = Depends(get_db), current_user = Depends(get_current_user)):
    return await create_expense(db, data, current_user.id)

@router.get("/all", response_model=list[ExpenseOut])
async def my_expenses(
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user),
):
    return await get_all_expenses(db, user_id=current_user.id)

@router.delete("/{expense_id}")
async def del_expense(expense_id: int, db:AsyncSession = Depends(get_db), current_user = Depends(get_current_user)):
    return await delete_expense(db, user_id=current_user.id, expense_id=expense_id)

@router.patch("/{expense_id}", response_model=ExpenseOut)
async def edit(data: ExpenseCreate, expense_id: int, db: AsyncSession = Depends(get_db), current_user = Depends(get_current_user)):
    return await edit_expense(db, data, expense_id=expense_id, user_id=current_user.id)

@router.get("/{expense_id}", response_model=ExpenseDetailOut)
async def fetch(
    expense_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user),
):
    return await get_expense_details(
        db,
        expense_id=expense_id,
        user_id=current_user.id
    )
