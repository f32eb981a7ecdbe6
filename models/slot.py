"""
Slot, buyer and item records as loaded from the backend.

A slot is one expected purchase/review assignment inside a day group of an
item. Its product fields (name, option, keyword, price, notes, date) are
per-group overrides of the item. The buyer is embedded and optional.
"""

from typing import Optional, Union
from pydantic import Field, field_validator

from models.base import RecordSchema


# Loose scalar: cells keep whatever the user typed ("15,000" stays a string)
CellValue = Optional[Union[bool, int, float, str]]


class SlotStatus:
    """Stored slot status values."""
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    ALL = (ACTIVE, COMPLETED, CANCELLED)


class ReviewImage(RecordSchema):
    """Review screenshot attached to a buyer (read-only here)."""

    id: Optional[int] = Field(None, description="Image ID")
    buyer_id: Optional[int] = Field(None, description="Owning buyer ID")
    s3_url: Optional[str] = Field(None, description="Public image URL")
    file_name: Optional[str] = Field(None, description="Original file name")


class Buyer(RecordSchema):
    """Buyer sub-record embedded in a slot."""

    id: Optional[int] = Field(None, description="Buyer ID (None until created)")
    order_number: CellValue = None
    buyer_name: CellValue = None
    recipient_name: CellValue = None
    user_id: CellValue = None
    contact: CellValue = None
    address: CellValue = None
    account_info: CellValue = None
    amount: CellValue = None
    tracking_number: CellValue = None
    courier_company: CellValue = None
    deposit_name: CellValue = None
    payment_confirmed: CellValue = None
    shipping_delayed: CellValue = None
    images: list[ReviewImage] = Field(default_factory=list)

    @property
    def has_buyer_data(self) -> bool:
        """True once any identifying or payment field is filled in."""
        return any(
            getattr(self, name)
            for name in (
                "order_number", "buyer_name", "recipient_name", "user_id",
                "contact", "address", "account_info", "amount",
            )
        )

    @property
    def review_image(self) -> Optional[ReviewImage]:
        """First review image, if any."""
        return self.images[0] if self.images else None


class Slot(RecordSchema):
    """One row of item_slots with its embedded buyer."""

    id: int = Field(..., description="Slot ID")
    item_id: int = Field(..., description="Parent item ID")
    slot_number: Optional[int] = Field(None, description="Order inside the item")
    day_group: int = Field(1, description="Day group (1, 2, ...)")

    # Per-group overrides of the item
    date: CellValue = None
    product_name: CellValue = None
    purchase_option: CellValue = None
    keyword: CellValue = None
    product_price: CellValue = None
    notes: CellValue = None

    status: CellValue = None
    expected_buyer: CellValue = None
    review_cost: CellValue = None
    upload_link_token: Optional[str] = None
    buyer_id: Optional[int] = None
    buyer: Optional[Buyer] = None

    @field_validator("day_group", mode="before")
    @classmethod
    def default_day_group(cls, v):
        return 1 if v in (None, "", 0) else v

    @property
    def group_key(self) -> tuple[int, int]:
        return (self.item_id, self.day_group)


class Item(RecordSchema):
    """Campaign item: catalogue-level fields shared by every group."""

    id: int = Field(..., description="Item ID")
    campaign_id: Optional[int] = None
    product_name: CellValue = None
    platform: CellValue = None
    shipping_type: CellValue = None
    keyword: CellValue = None
    purchase_option: CellValue = None
    product_price: CellValue = None
    total_purchase_count: CellValue = None
    daily_purchase_count: CellValue = None
    product_url: CellValue = None
    courier_service_yn: CellValue = None
    sale_price_per_unit: CellValue = None
    courier_price_per_unit: CellValue = None
    notes: CellValue = None
    date: CellValue = None
    display_order: Optional[int] = None
