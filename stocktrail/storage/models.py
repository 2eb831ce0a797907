"""
Database models for StockTrail.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    CheckConstraint,
    func,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import declarative_base

Base = declarative_base()


# =============================================================================
# Enums
# =============================================================================

class Role(str, Enum):
    """Permission tier."""
    SUPERADMIN = "Superadmin"
    ADMIN = "Admin"
    USER = "User"

    @property
    def role_id(self) -> int:
        """Numeric id used by the front end (1 = Superadmin, 3 = User)."""
        return {Role.SUPERADMIN: 1, Role.ADMIN: 2, Role.USER: 3}[self]

    @property
    def is_staff(self) -> bool:
        """Admin or Superadmin."""
        return self in (Role.SUPERADMIN, Role.ADMIN)

    @classmethod
    def parse(cls, value) -> "Role":
        """Accept a role name in any case or a numeric role id."""
        if isinstance(value, Role):
            return value
        if isinstance(value, int) or (isinstance(value, str) and value.isdigit()):
            lookup = {1: cls.SUPERADMIN, 2: cls.ADMIN, 3: cls.USER}
            if int(value) not in lookup:
                raise ValueError(f"Unknown role id: {value}")
            return lookup[int(value)]
        for role in cls:
            if role.value.lower() == str(value).strip().lower():
                return role
        raise ValueError(f"Unknown role: {value}")


class UserStatus(str, Enum):
    """Account activation state."""
    INACTIVE = "Inactive"
    ACTIVE = "Active"
    REMOVED = "Removed"


class Classification(str, Enum):
    """Item type classification."""
    ASSET = "Asset"
    CONSUMABLE = "Consumable"


class ApprovalStatus(str, Enum):
    """Stored approval state of a borrowing record."""
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class ActionType(str, Enum):
    """Activity log action."""
    ADD = "ADD"
    MODIFY = "MODIFY"
    REMOVE = "REMOVE"
    BORROW = "BORROW"
    REQUEST = "REQUEST"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    RETURN = "RETURN"


def _enum_column(enum_cls):
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=20,
        values_callable=lambda members: [m.value for m in members],
    )


# =============================================================================
# Identity
# =============================================================================

class User(Base):
    """User account. Rows are never hard-deleted."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(_enum_column(Role), nullable=False, default=Role.USER)
    status = Column(_enum_column(UserStatus), nullable=False, default=UserStatus.INACTIVE)
    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"User({self.id}, '{self.email}', {self.role.value}, {self.status.value})"


# =============================================================================
# Reference data
# =============================================================================

class Committee(Base):
    __tablename__ = "committees"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), unique=True, nullable=False)


class ItemType(Base):
    __tablename__ = "types"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), unique=True, nullable=False)
    classification = Column(_enum_column(Classification), nullable=False, default=Classification.ASSET)


class Unit(Base):
    __tablename__ = "units"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), unique=True, nullable=False)


# =============================================================================
# Inventory
# =============================================================================

class Item(Base):
    """Trackable inventory item."""
    __tablename__ = "items"

    id = Column(Integer, primary_key=True)
    code = Column(String(20), unique=True, nullable=False)
    name = Column(String(200), nullable=False)
    committee_id = Column(Integer, ForeignKey("committees.id", ondelete="RESTRICT"), nullable=True)
    type_id = Column(Integer, ForeignKey("types.id", ondelete="RESTRICT"), nullable=True)
    unit_id = Column(Integer, ForeignKey("units.id", ondelete="RESTRICT"), nullable=True)
    total_quantity = Column(Integer, nullable=False, default=0)
    location = Column(String(200))
    threshold = Column(Integer, nullable=True)

    __table_args__ = (
        CheckConstraint("total_quantity >= 0", name="ck_items_total_quantity_nonneg"),
        Index("uq_items_name_lower", func.lower(name), unique=True),
    )


class CodeSequence(Base):
    """Highest number ever issued for a code prefix."""
    __tablename__ = "code_sequences"

    name = Column(String(20), primary_key=True)
    last_value = Column(Integer, nullable=False, default=0)


class BorrowingRecord(Base):
    """One reservation of an item quantity."""
    __tablename__ = "borrowing"

    id = Column(Integer, primary_key=True)
    # NULL once the item has been deleted; the record stays as history
    item_id = Column(Integer, ForeignKey("items.id", ondelete="SET NULL"), nullable=True, index=True)
    borrower_name = Column(String(200), nullable=False)
    committee_id = Column(Integer, ForeignKey("committees.id", ondelete="RESTRICT"), nullable=True)
    quantity = Column(Integer, nullable=False)
    date_borrowed = Column(Date, nullable=False)
    expected_return_date = Column(Date, nullable=False)
    date_returned = Column(Date, nullable=True)
    approval_status = Column(_enum_column(ApprovalStatus), nullable=False, default=ApprovalStatus.PENDING)
    requested_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_borrowing_quantity_positive"),
    )


# =============================================================================
# Audit trail and notifications
# =============================================================================

class ActivityLogEntry(Base):
    """Append-only audit record."""
    __tablename__ = "activity_log"

    id = Column(Integer, primary_key=True)
    action_type = Column(_enum_column(ActionType), nullable=False)
    details = Column(Text, nullable=False)
    action_date = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    actor_user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)


class Notification(Base):
    """Targeted (target_user_id set) or broadcast (NULL) notification."""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True)
    item_id = Column(Integer, ForeignKey("items.id", ondelete="CASCADE"), nullable=True)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    target_user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
