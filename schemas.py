from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from models import TransactionType

# Largest single amount or budget limit accepted, in currency units.
MAX_AMOUNT = Decimal("1000000000000")


class CredentialsIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(..., min_length=1, max_length=150)
    password: str = Field(..., min_length=1, max_length=200)


class TransactionIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    description: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0, le=MAX_AMOUNT, allow_inf_nan=False)
    type: TransactionType
    category: str = Field(..., min_length=1, max_length=100)
    date: Optional[datetime] = None


class BudgetIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    category: str = Field(..., min_length=1, max_length=100)
    limit: Decimal = Field(
        ..., ge=-MAX_AMOUNT, le=MAX_AMOUNT, allow_inf_nan=False
    )


class ProfileIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, max_length=200)
    email: Optional[str] = Field(default=None, max_length=320)
    profile_pic: Optional[str] = Field(default=None, alias="profilePic")
    bio: Optional[str] = None


class ProfilePictureIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    profile_pic: str = Field(..., min_length=1, alias="profilePic")
