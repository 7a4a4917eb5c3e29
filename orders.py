"""
Order placement against per-size stock.

Each cart line is reserved with a single conditional update, so MongoDB
only decrements a size entry whose quantity still covers the request.
Reservations taken earlier in the same call are released again if a
later line (or the order insert itself) fails, which keeps a multi-line
order all-or-nothing without needing multi-document transactions.
"""
import time
import uuid
from typing import Any, Dict, List, Tuple

import structlog
from pymongo.errors import PyMongoError

from database import create_document, get_documents, parse_id, to_public
from errors import (
    CommerceError,
    InsufficientStock,
    OrderCommitFailed,
    ProductNotFound,
    SizeNotFound,
    StorageFailure,
    ValidationError,
)
from schemas import CartLine, CurrentUser, Order, OrderItem, PaymentDetails, ShippingAddress

logger = structlog.get_logger(__name__)

PAYMENT_METHOD = "M-Pesa"

# (product ObjectId, size, quantity) taken during one place_order call
Reservation = Tuple[Any, str, int]


def _transaction_id() -> str:
    return f"MPESA_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


def reserve(database, line: CartLine) -> Tuple[OrderItem, Reservation]:
    """Decrement stock for one cart line and return the priced order item.

    The item is priced before the decrement, so a product document that
    cannot be priced never has its stock touched.
    """
    oid = parse_id(line.product_id)
    product = database.product.find_one({"_id": oid}) if oid else None
    if not product:
        raise ProductNotFound(f"Product {line.product_id} not found.")
    if not any(s.get("size") == line.size for s in product.get("stock", [])):
        raise SizeNotFound(f"Size {line.size} not available for {product.get('name')}.")

    item = OrderItem(
        product_id=str(oid),
        name=product["name"],
        size=line.size,
        quantity=line.quantity,
        price=float(product["price"]),
    )

    result = database.product.update_one(
        {
            "_id": oid,
            "stock": {"$elemMatch": {"size": line.size, "quantity": {"$gte": line.quantity}}},
        },
        {"$inc": {"stock.$.quantity": -line.quantity}},
    )
    if result.modified_count != 1:
        raise InsufficientStock(item.name, line.size)
    return item, (oid, line.size, line.quantity)


def release(database, reservations: List[Reservation]) -> None:
    """Give reserved quantities back, newest first."""
    for oid, size, quantity in reversed(reservations):
        try:
            result = database.product.update_one(
                {"_id": oid, "stock.size": size},
                {"$inc": {"stock.$.quantity": quantity}},
            )
        except PyMongoError:
            logger.exception(
                "Failed to release reserved stock",
                product_id=str(oid),
                size=size,
                quantity=quantity,
            )
            continue
        if result.matched_count == 0:
            logger.error(
                "Failed to release reserved stock, size entry is gone",
                product_id=str(oid),
                size=size,
                quantity=quantity,
            )


def place_order(database, caller: CurrentUser, items: List[CartLine], shipping_address: ShippingAddress) -> Dict[str, Any]:
    if not items:
        raise ValidationError("No items in the order.")
    if any(line.quantity < 1 for line in items):
        raise ValidationError("Quantity must be at least 1.")

    reservations: List[Reservation] = []
    order_items: List[OrderItem] = []
    try:
        for line in items:
            item, reservation = reserve(database, line)
            reservations.append(reservation)
            order_items.append(item)
    except CommerceError as e:
        release(database, reservations)
        logger.info("Order rejected", user_id=caller.id, reason=e.message)
        raise
    except Exception as e:
        release(database, reservations)
        logger.exception("Failure while reserving stock", user_id=caller.id)
        raise StorageFailure() from e

    try:
        order = Order(
            user_id=caller.id,
            items=order_items,
            total_amount=round(sum(i.price * i.quantity for i in order_items), 2),
            shipping_address=shipping_address,
            payment=PaymentDetails(method=PAYMENT_METHOD, transaction_id=_transaction_id(), status="Completed"),
        )
        order_id = create_document(database, "order", order)
    except Exception as e:
        release(database, reservations)
        logger.exception(
            "Order commit failed after stock was reserved, reservations released",
            user_id=caller.id,
            reservations=len(reservations),
        )
        raise OrderCommitFailed() from e

    logger.info("Order placed", order_id=order_id, user_id=caller.id, total_amount=order.total_amount)
    return to_public(database.order.find_one({"_id": parse_id(order_id)}))


def list_orders_for_user(database, caller: CurrentUser) -> List[Dict[str, Any]]:
    return [to_public(d) for d in get_documents(database, "order", {"user_id": caller.id})]


def list_all_orders(database) -> List[Dict[str, Any]]:
    orders = [to_public(d) for d in get_documents(database, "order")]
    user_ids = {parse_id(o["user_id"]) for o in orders} - {None}
    names = {str(u["_id"]): u.get("name") for u in database.user.find({"_id": {"$in": list(user_ids)}})}
    for o in orders:
        o["user"] = {"id": o["user_id"], "name": names.get(o["user_id"])}
    return orders
