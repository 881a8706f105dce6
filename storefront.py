"""
Storefront services: catalog, checkout, order board, status lookup and edit.

Each service receives the collection handles it needs at construction time
and performs one short, timeout-bounded database interaction per call. They
raise the errors from ``errors``; HTTP mapping happens in ``main``.
"""
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, NamedTuple, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ValidationError

from config import Settings
from database import Collections, create_document, db_timeout, doc_to_dict, get_documents, parse_object_id
from errors import InvalidInput, NotFound, StorageError
from logging_config import get_logger
from schemas import (
    STATUS_DELIVERED,
    STATUS_NEW,
    BoardItem,
    BoardOrder,
    BuyerInfo,
    EditView,
    HomeView,
    LineItem,
    Order,
    OrderBoardView,
    OrderStatusView,
    Product,
    ProductCard,
    resolve_image_url,
    short_id,
)

log = get_logger(__name__)

QTY_PREFIX = "qty_"

# largest integer BSON can store
INT64_MAX = 2 ** 63 - 1

FormFields = Union[Mapping[str, Any], Iterable[Tuple[str, Any]]]


def _decode(model, doc: dict, what: str):
    try:
        return model.model_validate(doc_to_dict(doc))
    except ValidationError as e:
        log.error(f"[decode] malformed {what} document {doc.get('_id')}: {e}")
        raise StorageError(f"could not read {what}") from e


# ---------- Catalog ----------

class CatalogReader:
    PROJECTION = {"_id": 1, "name": 1, "price": 1, "description": 1, "image_path": 1}

    def __init__(self, products, uploads_base: str, timeout: float):
        self.products = products
        self.uploads_base = uploads_base
        self.timeout = timeout

    def active_products(self) -> List[Product]:
        with db_timeout(self.timeout, "fetch products"):
            docs = get_documents(self.products, {"is_active": True}, self.PROJECTION)
        return [_decode(Product, d, "product") for d in docs]

    def home_view(self) -> HomeView:
        cards = [
            ProductCard(
                id=p.id,
                name=p.name,
                price=p.price,
                description=p.description,
                image_url=resolve_image_url(self.uploads_base, p.image_path),
            )
            for p in self.active_products()
        ]
        return HomeView(products=cards, uploads_base=self.uploads_base)


# ---------- Checkout ----------

class OrderWriter:
    """Turns a submitted checkout form into a persisted order.

    Name and price of every line come from the catalog at write time; any
    price the client sends along is ignored.
    """

    def __init__(self, products, orders, timeout: float):
        self.products = products
        self.orders = orders
        self.timeout = timeout

    def create(self, fields: FormFields) -> str:
        form = _first_values(fields)
        buyer = _buyer_info(form)

        with db_timeout(self.timeout, "create order"):
            items = self._line_items(form)
            if not items:
                log.warning("[checkout] rejected: no valid line items")
                raise InvalidInput("select at least one product")

            order = {
                "items": items,
                "total": sum(i["subtotal"] for i in items),
                "buyer_name": buyer.buyer_name,
                "address": buyer.address,
                "igloo_sector": "",
                "email": buyer.email,
                "status": STATUS_NEW,
            }
            order_id = create_document(self.orders, order)

        log.info(f"[Order: {order_id}] created with {len(items)} item(s), total {order['total']}")
        return order_id

    def _line_items(self, form: Mapping[str, str]) -> List[dict]:
        items = []
        total = 0
        for key, raw in form.items():
            if not key.startswith(QTY_PREFIX):
                continue
            qty = _quantity(raw)
            if qty <= 0 or qty > INT64_MAX:
                continue
            try:
                oid = parse_object_id(key[len(QTY_PREFIX):])
            except InvalidInput:
                continue
            doc = self.products.find_one({"_id": oid}, {"name": 1, "price": 1})
            if doc is None:
                continue
            try:
                product = _CatalogPrice.model_validate(doc)
            except ValidationError:
                log.warning(f"[checkout] skipping product {oid}: unusable catalog entry")
                continue
            subtotal = product.price * qty
            if total + subtotal > INT64_MAX:
                log.warning(f"[checkout] skipping product {oid}: quantity {qty} too large")
                continue
            total += subtotal
            items.append({
                "product_id": oid,
                "name": product.name,
                "qty": qty,
                "unit_price": product.price,
                "subtotal": subtotal,
            })
        return items


class _CatalogPrice(BaseModel):
    name: str
    price: int


def _first_values(fields: FormFields) -> dict:
    pairs = fields.items() if isinstance(fields, Mapping) else fields
    form = {}
    for key, value in pairs:
        if key not in form and isinstance(value, str):
            form[key] = value
    return form


def _quantity(raw: str) -> int:
    """Plain ASCII integer with an optional sign, 0 for anything else."""
    raw = raw.strip()
    if not (raw.isascii() and raw.lstrip("+-").isdigit()) or raw.count("-") + raw.count("+") > 1:
        return 0
    return int(raw)


def _buyer_info(form: Mapping[str, str]) -> BuyerInfo:
    name = form.get("buyer_name", "").strip()
    address = form.get("address", "").strip()
    email = form.get("email", "").strip()
    if not name or not address or not email:
        log.warning("[checkout] rejected: missing buyer fields")
        raise InvalidInput("fill in name, address and email")
    return BuyerInfo(buyer_name=name, address=address, email=email)


# ---------- Order board ----------

class OrderBoard:
    def __init__(self, orders, timeout: float):
        self.orders = orders
        self.timeout = timeout

    def list_orders(self) -> OrderBoardView:
        with db_timeout(self.timeout, "fetch orders"):
            docs = get_documents(self.orders)
        rows = []
        for doc in docs:
            order = _decode(Order, doc, "order")
            rows.append(BoardOrder(
                id=order.id,
                short_id=short_id(order.id),
                buyer_name=order.buyer_name,
                status=order.status,
                items=[BoardItem(name=i.name, qty=i.qty) for i in order.items],
                total=order.total,
            ))
        return OrderBoardView(orders=rows)


# ---------- Status ----------

class LookupSource(NamedTuple):
    """One place an order may live. ``status`` overrides the stored status when set."""
    name: str
    collection: Any
    key: str
    status: Optional[str]
    auto_refresh: bool


class StatusResolver:
    def __init__(self, sources: Sequence[LookupSource], timeout: float):
        self.sources = list(sources)
        self.timeout = timeout

    @classmethod
    def for_collections(cls, collections: Collections, timeout: float) -> "StatusResolver":
        return cls([
            LookupSource("orders", collections.orders, "_id", None, True),
            LookupSource("deliveries", collections.deliveries, "order_id", STATUS_DELIVERED, False),
        ], timeout)

    def resolve(self, order_id: str) -> OrderStatusView:
        oid = parse_object_id(order_id)
        with db_timeout(self.timeout, "fetch order status"):
            for source in self.sources:
                doc = source.collection.find_one({source.key: oid})
                if doc is not None:
                    return self._view(str(oid), doc, source)
        raise NotFound("order not found")

    @staticmethod
    def _view(order_id: str, doc: dict, source: LookupSource) -> OrderStatusView:
        try:
            return OrderStatusView(
                order_id=order_id,
                status=source.status or doc.get("status", ""),
                items=[LineItem.model_validate(doc_to_dict(i)) for i in doc.get("items", [])],
                total=doc.get("total", 0),
                buyer_name=doc.get("buyer_name", ""),
                address=doc.get("address", ""),
                email=doc.get("email", ""),
                auto_refresh=source.auto_refresh,
            )
        except ValidationError as e:
            log.error(f"[decode] malformed document in {source.name} for order {order_id}: {e}")
            raise StorageError("could not read order") from e


# ---------- Edit ----------

class OrderEditor:
    def __init__(self, orders, timeout: float):
        self.orders = orders
        self.timeout = timeout

    def load(self, order_id: str) -> EditView:
        oid = parse_object_id(order_id)
        with db_timeout(self.timeout, "fetch order"):
            doc = self.orders.find_one({"_id": oid})
        order = self._editable(doc)
        return EditView(
            order_id=order.id,
            short_id=short_id(order.id),
            buyer_name=order.buyer_name,
            address=order.address,
            email=order.email,
            status=order.status,
            items=order.items,
            total=order.total,
        )

    def update(self, order_id: str, buyer_name: Optional[str], address: Optional[str]) -> None:
        """Change buyer name and address of an order that is still new."""
        oid = parse_object_id(order_id)
        buyer_name = (buyer_name or "").strip()
        address = (address or "").strip()

        with db_timeout(self.timeout, "update order"):
            self._editable(self.orders.find_one({"_id": oid}))
            if not buyer_name or not address:
                raise InvalidInput("fill in name and address")
            result = self.orders.update_one(
                {"_id": oid, "status": STATUS_NEW},
                {"$set": {"buyer_name": buyer_name, "address": address}},
            )

        # status changed between the read and the write
        if result.matched_count == 0:
            raise InvalidInput("order is not editable")
        log.info(f"[Order: {oid}] buyer details updated")

    @staticmethod
    def _editable(doc: Optional[dict]) -> Order:
        if doc is None:
            raise NotFound("order not found")
        order = _decode(Order, doc, "order")
        if order.status != STATUS_NEW:
            log.warning(f"[Order: {order.id}] edit refused in status '{order.status}'")
            raise InvalidInput("order is not editable")
        return order


# ---------- Wiring ----------

@dataclass(frozen=True)
class Storefront:
    catalog: CatalogReader
    checkout: OrderWriter
    board: OrderBoard
    status: StatusResolver
    editor: OrderEditor

    @classmethod
    def build(cls, collections: Collections, settings: Settings) -> "Storefront":
        return cls(
            catalog=CatalogReader(collections.products, settings.uploads_base, settings.db_timeout),
            checkout=OrderWriter(collections.products, collections.orders, settings.checkout_timeout),
            board=OrderBoard(collections.orders, settings.db_timeout),
            status=StatusResolver.for_collections(collections, settings.db_timeout),
            editor=OrderEditor(collections.orders, settings.db_timeout),
        )
