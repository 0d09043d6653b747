"""
Database Schemas for the Foodshare marketplace

MongoDB documents are described below using Pydantic models. Accounts live
in two independent collections, one per role:
- users: customers placing orders
- deliverers: people delivering them
- orders: placed orders (weak references to both accounts)

Feedback entries are embedded in the account they are about.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class Role(str, Enum):
    USER = "user"
    DELIVERER = "deliverer"

    @property
    def collection(self) -> str:
        return "users" if self is Role.USER else "deliverers"

    @property
    def cookie_name(self) -> str:
        return "loginUser" if self is Role.USER else "loginDeliverer"

    @property
    def opposite(self) -> "Role":
        return Role.DELIVERER if self is Role.USER else Role.USER


class FeedbackEntry(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    madeBy: str = Field(..., description="Display name of the rater at write time")
    msg: str = Field("", max_length=2000)

    @field_validator("rating", mode="before")
    @classmethod
    def rating_not_bool(cls, value):
        if isinstance(value, bool):
            raise ValueError("rating must be a number, not a boolean")
        return value


class Account(BaseModel):
    name: str
    password_hash: str = Field(..., description="BCrypt hash of password")
    email: str
    phone: str
    address: str
    city: str
    creditCardNum: str
    feedback: List[FeedbackEntry] = Field(default_factory=list)


class UserAccount(Account):
    savedFood: List[str] = Field(default_factory=list)
    orderHistory: List[str] = Field(default_factory=list, description="Order ids")


class DelivererAccount(Account):
    transportation: str
    acceptedOrders: List[str] = Field(default_factory=list, description="Order ids")


class Order(BaseModel):
    store: str
    food: str
    userLocation: str
    amount: float = Field(..., ge=0)
    date: datetime
    orderStatus: str = "placed"
    foodStatus: str = "pending"
    delivererID: Optional[str] = None
    userID: Optional[str] = None


ACCOUNT_MODELS = {
    Role.USER: UserAccount,
    Role.DELIVERER: DelivererAccount,
}
