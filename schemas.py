"""
Document schemas and view models for the penguin storefront.

Document models mirror what is stored in MongoDB (collection names live in
``database``); view models are the explicit context handed to each template.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

STATUS_NEW = "new"
STATUS_DELIVERED = "delivered"


# ---------- Documents ----------

# Collection: products
class Product(BaseModel):
    id: str
    name: str = Field(..., description="Product name")
    price: int = Field(..., ge=0, description="Price in the smallest currency unit")
    description: str = Field("", description="Product description")
    image_path: str = Field("", description="Relative path under UPLOADS_BASE or absolute URL")


# Embedded in orders and deliveries
class LineItem(BaseModel):
    product_id: Optional[str] = None
    name: str
    qty: int = Field(..., gt=0)
    unit_price: int = Field(..., ge=0)
    subtotal: int = Field(..., ge=0)


# Collection: orders
class Order(BaseModel):
    id: str
    buyer_name: str
    address: str
    email: str
    status: str = STATUS_NEW
    items: List[LineItem] = Field(default_factory=list)
    total: int = Field(0, ge=0)
    created_at: Optional[datetime] = None


# ---------- Input ----------

class BuyerInfo(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    buyer_name: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)


# ---------- Views ----------

class ProductCard(BaseModel):
    id: str
    name: str
    price: int
    description: str
    image_url: str


class HomeView(BaseModel):
    products: List[ProductCard]
    uploads_base: str
    default_name: str = ""
    default_email: str = ""
    default_address: str = ""


class BoardItem(BaseModel):
    name: str
    qty: int


class BoardOrder(BaseModel):
    id: str
    short_id: str
    buyer_name: str
    status: str
    items: List[BoardItem]
    total: int


class OrderBoardView(BaseModel):
    orders: List[BoardOrder]


class OrderStatusView(BaseModel):
    order_id: str
    status: str
    items: List[LineItem]
    total: int
    buyer_name: str
    address: str
    email: str
    auto_refresh: bool


class EditView(BaseModel):
    order_id: str
    short_id: str
    buyer_name: str
    address: str
    email: str
    status: str
    items: List[LineItem]
    total: int


def short_id(order_id: str) -> str:
    """Last four characters of an id, or the whole id when shorter."""
    return order_id[-4:]


def resolve_image_url(uploads_base: str, image_path: str) -> str:
    if not image_path or image_path.startswith(("http://", "https://")):
        return image_path
    return uploads_base.rstrip("/") + "/" + image_path.lstrip("/")
