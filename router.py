from datetime import date

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from auth import get_current_user
from database import get_db, Transaction, Budget, Notification, User
from schemas import (
    Expense,
    ExpenseResponse,
    BudgetCreate,
    BudgetResponse,
    NotificationResponse,
)
from snapshot import period_start, refresh_spent


router = APIRouter()


@router.post(
    "/expenses", response_model=ExpenseResponse, status_code=status.HTTP_201_CREATED
)
async def create_expense(
    expense: Expense,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    db_expense = Transaction(
        user_id=current_user.id,
        category=expense.category,
        amount=expense.amount,
        kind=expense.kind,
        date=expense.date,
        description=expense.description,
    )
    db.add(db_expense)
    db.commit()
    db.refresh(db_expense)
    return db_expense


@router.get("/expenses", response_model=list[ExpenseResponse])
async def get_expenses(
    db: Session = Depends(get_db), current_user: User = Depends(get_current_user)
):
    expenses = (
        db.query(Transaction)
        .filter(Transaction.user_id == current_user.id)
        .order_by(Transaction.date.desc(), Transaction.id.desc())
        .all()
    )
    return expenses


@router.post(
    "/budgets", response_model=BudgetResponse, status_code=status.HTTP_201_CREATED
)
async def create_budget(
    budget: BudgetCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    month = period_start(date.today())
    category = budget.category.strip()

    existing = (
        db.query(Budget)
        .filter(
            Budget.user_id == current_user.id,
            func.lower(Budget.category) == category.lower(),
            Budget.month == month,
        )
        .first()
    )
    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"A budget for {category} already exists this month",
        )

    db_budget = Budget(
        user_id=current_user.id,
        category=category,
        month=month,
        limit_amount=budget.limit_amount,
    )
    refresh_spent(db, [db_budget])
    db.add(db_budget)
    db.commit()
    db.refresh(db_budget)
    return db_budget


@router.get("/budgets", response_model=list[BudgetResponse])
async def get_budgets(
    db: Session = Depends(get_db), current_user: User = Depends(get_current_user)
):
    budgets = (
        db.query(Budget)
        .filter(Budget.user_id == current_user.id)
        .order_by(Budget.month.desc(), Budget.category)
        .all()
    )
    refresh_spent(db, budgets)
    db.commit()
    return budgets


@router.get("/notifications", response_model=list[NotificationResponse])
async def get_notifications(
    db: Session = Depends(get_db), current_user: User = Depends(get_current_user)
):
    return (
        db.query(Notification)
        .filter(Notification.user_id == current_user.id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .all()
    )


@router.get("/notifications/unread", response_model=list[NotificationResponse])
async def get_unread_notifications(
    db: Session = Depends(get_db), current_user: User = Depends(get_current_user)
):
    return (
        db.query(Notification)
        .filter(
            Notification.user_id == current_user.id,
            Notification.read_flag.is_(False),
        )
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .all()
    )


@router.post("/notifications/{notification_id}/read")
async def mark_notification_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    notification = (
        db.query(Notification)
        .filter(
            Notification.id == notification_id,
            Notification.user_id == current_user.id,
        )
        .first()
    )
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    notification.read_flag = True
    db.commit()
    return {"message": "Notification marked as read"}
