from __future__ import annotations

from decimal import Decimal, InvalidOperation

from ..extensions import db
from ..time_utils import coerce_datetime, to_utc_z


DEFAULT_LOW_STOCK_THRESHOLD = 5


def _price(value, field: str) -> Decimal:
    if value is None:
        return Decimal("0")
    try:
        price = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{field} must be a decimal number")
    if not price.is_finite():
        raise ValueError(f"{field} must be a finite number")
    if price < 0:
        raise ValueError(f"{field} must be >= 0")
    return price


def _optional_str(value):
    if value is None:
        return None
    return str(value)


class Item(db.Model):
    """
    Cached inventory item.

    TOMBSTONES: is_deleted rows stay in the table for audit and undo. Default
    listings exclude them; get-by-id does not. Rows are only physically removed
    by a full local-cache wipe.

    Rows are replaced wholesale on upsert (remote pulls and local edits alike),
    so from_dict() assigns every column explicitly.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.Index("ix_items_active_created", "is_deleted", "created_at"),
    )

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    # Display label; category_id is a weak reference to categories.id
    category = db.Column(db.String(255), nullable=False, default="")
    category_id = db.Column(db.String(64), nullable=True, index=True)

    details = db.Column(db.Text, nullable=True)
    photo_url = db.Column(db.String(1024), nullable=True)

    buying_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    selling_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=DEFAULT_LOW_STOCK_THRESHOLD)

    is_deleted = db.Column(db.Boolean, nullable=False, default=False, index=True)

    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    deleted_by = db.Column(db.String(64), nullable=True)

    def __repr__(self) -> str:
        return f"<Item id={self.id!r} name={self.name!r} qty={self.quantity} deleted={self.is_deleted}>"

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.low_stock_threshold

    @classmethod
    def from_dict(cls, data: dict) -> "Item":
        item_id = data.get("id")
        if not item_id:
            raise ValueError("item id is required")
        name = data.get("name")
        if name is None or str(name).strip() == "":
            raise ValueError("item name is required")

        threshold = data.get("low_stock_threshold")
        return cls(
            id=str(item_id),
            name=str(name),
            category=str(data.get("category") or ""),
            category_id=_optional_str(data.get("category_id")),
            details=data.get("details"),
            photo_url=data.get("photo_url"),
            buying_price=_price(data.get("buying_price"), "buying_price"),
            selling_price=_price(data.get("selling_price"), "selling_price"),
            quantity=int(data.get("quantity") or 0),
            low_stock_threshold=DEFAULT_LOW_STOCK_THRESHOLD if threshold is None else int(threshold),
            is_deleted=bool(data.get("is_deleted") or False),
            created_by=_optional_str(data.get("created_by")),
            created_at=coerce_datetime(data.get("created_at")),
            updated_at=coerce_datetime(data.get("updated_at")),
            deleted_at=coerce_datetime(data.get("deleted_at")),
            deleted_by=_optional_str(data.get("deleted_by")),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "category_id": self.category_id,
            "details": self.details,
            "photo_url": self.photo_url,
            "buying_price": float(self.buying_price or 0),
            "selling_price": float(self.selling_price or 0),
            "quantity": self.quantity,
            "low_stock_threshold": self.low_stock_threshold,
            "is_deleted": self.is_deleted,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "deleted_at": to_utc_z(self.deleted_at),
            "deleted_by": self.deleted_by,
        }


class Category(db.Model):
    """Reference entity; replace-on-conflict, no tombstones."""
    __tablename__ = "categories"

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Category id={self.id!r} name={self.name!r}>"

    @classmethod
    def from_dict(cls, data: dict) -> "Category":
        if not data.get("id"):
            raise ValueError("category id is required")
        if not data.get("name"):
            raise ValueError("category name is required")
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            created_by=_optional_str(data.get("created_by")),
            created_at=coerce_datetime(data.get("created_at")),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


class Profile(db.Model):
    """Cached user profile; used to resolve display names for the activity log."""
    __tablename__ = "profiles"

    id = db.Column(db.String(64), primary_key=True)
    email = db.Column(db.String(255), nullable=False, index=True)
    username = db.Column(db.String(255), nullable=True)
    avatar_url = db.Column(db.String(1024), nullable=True)

    def __repr__(self) -> str:
        return f"<Profile id={self.id!r} email={self.email!r}>"

    @property
    def display_name(self) -> str:
        return self.username or self.email

    @classmethod
    def from_dict(cls, data: dict) -> "Profile":
        if not data.get("id"):
            raise ValueError("profile id is required")
        if not data.get("email"):
            raise ValueError("profile email is required")
        return cls(
            id=str(data["id"]),
            email=str(data["email"]),
            username=data.get("username"),
            avatar_url=data.get("avatar_url"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "username": self.username,
            "avatar_url": self.avatar_url,
        }
