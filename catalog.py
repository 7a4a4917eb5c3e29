"""Product catalog reads and admin management."""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog

from database import create_document, get_documents, parse_id, to_public
from errors import ProductNotFound
from schemas import Product, ProductUpdate

logger = structlog.get_logger(__name__)


def _find(database, product_id: str) -> Dict[str, Any]:
    oid = parse_id(product_id)
    doc = database.product.find_one({"_id": oid}) if oid else None
    if not doc:
        raise ProductNotFound()
    return doc


def list_products(database, category: Optional[str] = None) -> List[Dict[str, Any]]:
    query: Dict[str, Any] = {}
    if category:
        query["category"] = category
    return [to_public(d) for d in get_documents(database, "product", query)]


def get_product(database, product_id: str) -> Dict[str, Any]:
    return to_public(_find(database, product_id))


def create_product(database, payload: Product) -> Dict[str, Any]:
    product_id = create_document(database, "product", payload)
    logger.info("Product created", product_id=product_id, name=payload.name)
    return get_product(database, product_id)


def update_product(database, product_id: str, payload: ProductUpdate) -> Dict[str, Any]:
    doc = _find(database, product_id)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if changes:
        changes["updated_at"] = datetime.now(timezone.utc)
        database.product.update_one({"_id": doc["_id"]}, {"$set": changes})
        logger.info("Product updated", product_id=product_id, fields=sorted(changes))
    return get_product(database, product_id)


def delete_product(database, product_id: str) -> None:
    doc = _find(database, product_id)
    # TODO: destroy the hosted image via image_id once an image-host client exists
    database.product.delete_one({"_id": doc["_id"]})
    logger.info("Product deleted", product_id=product_id, image_id=doc.get("image_id"))
