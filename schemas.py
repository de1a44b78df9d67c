from pydantic import BaseModel, ConfigDict, Field, constr
from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional


class UserBase(BaseModel):
    username: constr(min_length=3, max_length=50)


class UserCreate(UserBase):
    email: constr(min_length=3, max_length=254, pattern=r"^[^@\s]+@[^@\s]+$")
    password: constr(min_length=6)


class UserLogin(UserBase):
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class Expense(BaseModel):
    category: str
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    kind: Literal["expense", "income"] = "expense"
    date: date
    description: Optional[str] = None


class ExpenseResponse(Expense):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int


class BudgetCreate(BaseModel):
    category: constr(min_length=1)
    limit_amount: Decimal = Field(ge=0, max_digits=12, decimal_places=2)


class BudgetResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    category: str
    limit_amount: Decimal
    spent_amount: Optional[Decimal] = None
    month: date


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    body: str
    read_flag: bool
    created_at: datetime
