"""
API Schemas for StockTrail

Pydantic models for request validation and response serialization:
- Auth models
- Inventory and reference data models
- Borrowing models
- Activity log and notification models
- User and settings models

Design Decisions:
1. Wire names stay camelCase (itemName, committeeID, borrowerName, ...) so the
   browser front end keeps working; Python attributes are snake_case.
2. Separate Request/Response: every endpoint has an explicit response model.
3. Client-supplied roleID/userID fields are accepted but ignored; identity
   comes from the bearer token.
"""

from datetime import date, datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model exchanging camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Generic Responses
# =============================================================================

class ActionResponse(CamelModel):
    """Outcome of a mutation."""

    success: bool = True
    message: Optional[str] = None


class ErrorResponse(BaseModel):
    """Standard error response."""

    success: bool = False
    error: str
    detail: Optional[str] = None
    code: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": False,
                "error": "Only 2 units available.",
                "detail": None,
                "code": "CONFLICT",
                "timestamp": "2025-01-20T12:00:00Z",
            }
        }
    )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    version: str
    uptime_seconds: float
    database: str = "connected"


# =============================================================================
# Auth Schemas
# =============================================================================

class LoginRequest(BaseModel):
    email: str
    password: str


class FirstLoginRequest(CamelModel):
    """Permanent password for an Inactive account; the token comes from the login response."""

    new_password: str = Field(..., min_length=1)


class UserProfile(CamelModel):
    """Signed-in user as shown by the front end."""

    id: int
    full_name: str
    email: str
    role_id: int
    role: str
    status: str
    photo_url: Optional[str] = None


class LoginResponse(CamelModel):
    success: bool = True
    message: Optional[str] = None
    user: Optional[UserProfile] = None
    access_token: Optional[str] = None
    token_type: str = "bearer"

    # First-login branch
    require_password_change: bool = False
    user_id: Optional[int] = Field(None, alias="userID")
    first_login_token: Optional[str] = None


# =============================================================================
# Inventory Schemas
# =============================================================================

class ItemWrite(CamelModel):
    """Create or edit an item."""

    item_name: Optional[str] = None
    committee_id: Optional[int] = Field(None, alias="committeeID")
    type_id: Optional[int] = Field(None, alias="typeID")
    quantity: Optional[int] = None
    unit_id: Optional[int] = Field(None, alias="unitID")
    location: Optional[str] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "itemName": "Stapler",
                "committeeID": 1,
                "typeID": 2,
                "quantity": 5,
                "unitID": 1,
                "location": "Cabinet A",
            }
        }
    )


class ItemResponse(CamelModel):
    id: int
    code: str
    name: str
    committee: Optional[str] = None
    committee_id: Optional[int] = Field(None, alias="committeeID")
    type: Optional[str] = None
    classification: Optional[str] = None
    type_id: Optional[int] = Field(None, alias="typeID")
    total_qty: int
    unit: Optional[str] = None
    unit_id: Optional[int] = Field(None, alias="unitID")
    location: Optional[str] = None
    threshold: Optional[int] = None
    borrowed_qty: int
    available_qty: int


class ItemCreateResponse(ActionResponse):
    code: Optional[str] = None


class OptionResponse(BaseModel):
    value: int
    label: str


class ReferencesResponse(BaseModel):
    committees: list[OptionResponse]
    types: list[OptionResponse]
    units: list[OptionResponse]


class ThresholdItemResponse(BaseModel):
    id: int
    name: str
    category: Optional[str] = None
    threshold: Optional[int] = None


class ThresholdUpdate(BaseModel):
    threshold: int = Field(..., ge=0)


# =============================================================================
# Dashboard Schemas
# =============================================================================

class StatsResponse(CamelModel):
    total_items: int
    borrowed_items: int


class LowStockResponse(CamelModel):
    id: int
    name: str
    quantity: int
    type_name: str
    threshold: Optional[int] = None


class ActivityResponse(BaseModel):
    title: str
    description: str
    timestamp: datetime


# =============================================================================
# Borrowing Schemas
# =============================================================================

class BorrowCreate(CamelModel):
    item_id: Optional[int] = Field(None, alias="itemID")
    borrower_name: Optional[str] = None
    committee_id: Optional[int] = Field(None, alias="committeeID")
    quantity: Optional[int] = None
    date_borrowed: Optional[date] = None
    expected_return: Optional[date] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "itemID": 1,
                "borrowerName": "Ana Cruz",
                "committeeID": 1,
                "quantity": 2,
                "dateBorrowed": "2025-01-20",
                "expectedReturn": "2025-01-27",
            }
        }
    )


class BorrowingResponse(CamelModel):
    id: int
    item_id: Optional[int] = Field(None, alias="itemID")
    code: Optional[str] = None
    name: Optional[str] = None
    borrower: str
    committee: Optional[str] = None
    qty: int
    date_borrowed: date
    date_expected: date
    date_returned: Optional[date] = None
    approval_status: str
    status: str


# =============================================================================
# History & Notification Schemas
# =============================================================================

class HistoryEntryResponse(BaseModel):
    id: int
    type: str
    details: str
    date: datetime
    user: Optional[str] = None


class NotificationResponse(CamelModel):
    id: int
    title: str
    is_read: bool
    timestamp: datetime
    item_id: Optional[int] = Field(None, alias="itemID")


class MarkAllReadResponse(BaseModel):
    success: bool = True
    affected: int


# =============================================================================
# User & Settings Schemas
# =============================================================================

class UserCreate(BaseModel):
    """New account with a temporary password."""

    name: str = Field(..., min_length=1)
    email: EmailStr
    # Role name ("Admin") or role id (2); unknown values fall back to User
    role: Optional[Union[int, str]] = None
    password: str = Field(..., min_length=1)


class UserResponse(CamelModel):
    id: int
    name: str
    email: str
    role_id: int = Field(..., alias="roleID")
    role: str
    status: str
    last_login: Optional[datetime] = None


class DefinitionCreate(BaseModel):
    """Committee, unit or type."""

    name: str
    classification: Optional[str] = None


class DefinitionResponse(ActionResponse):
    id: Optional[int] = None
