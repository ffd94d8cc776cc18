"""
Storefront operations that take more than one store call.

Routes in main.py stay thin and delegate here: account creation and login,
catalog listing, order placement with stock reservation, review submission
with rating aggregation, favorites and profile updates.
"""

import logging
import math
import re
from typing import List, Optional, Tuple

from pymongo.errors import DuplicateKeyError, PyMongoError

import config
from auth import check_password, create_token, hash_password
from errors import (
    DuplicateReview,
    DuplicateUser,
    InsufficientStock,
    InternalFailure,
    InvalidCredentials,
    NotFound,
    ValidationFailure,
)
from schemas import (
    LoginRequest,
    Order,
    OrderCreate,
    OrderItem,
    ProfileUpdate,
    RegisterRequest,
    Review,
    ReviewCreate,
    User,
)
from stores import CatalogStore, OrderStore, ReviewStore, UserStore, to_object_id

logger = logging.getLogger(__name__)

SORT_OPTIONS = {
    "price-low": [("price", 1), ("_id", 1)],
    "price-high": [("price", -1), ("_id", 1)],
    "rating": [("rating", -1), ("_id", 1)],
    "newest": [("created_at", -1), ("_id", -1)],
}
DEFAULT_SORT = "newest"


# Accounts
def register_user(users: UserStore, payload: RegisterRequest) -> Tuple[dict, str]:
    if users.find_by_email(payload.email):
        raise DuplicateUser(payload.email)
    user = User(name=payload.name, email=payload.email, password_hash=hash_password(payload.password))
    try:
        user_doc = users.create(user)
    except DuplicateKeyError:
        raise DuplicateUser(payload.email)
    logger.info("Registered user %s", user_doc["_id"])
    return user_doc, create_token(user_doc)


def login_user(users: UserStore, payload: LoginRequest) -> Tuple[dict, str]:
    user_doc = users.find_by_email(payload.email)
    if not user_doc or not check_password(payload.password, user_doc["password_hash"]):
        raise InvalidCredentials()
    return user_doc, create_token(user_doc)


def update_profile(users: UserStore, user_doc: dict, payload: ProfileUpdate) -> dict:
    changes = payload.model_dump(exclude_none=True)
    if not changes:
        return user_doc
    email = changes.get("email")
    if email and email != user_doc["email"]:
        other = users.find_by_email(email)
        if other and other["_id"] != user_doc["_id"]:
            raise DuplicateUser(email)
    try:
        updated = users.update_profile(user_doc["_id"], changes)
    except DuplicateKeyError:
        raise DuplicateUser(email)
    if updated is None:
        raise NotFound("User")
    return updated


# Catalog
def build_product_filter(category: Optional[str] = None, search: Optional[str] = None) -> dict:
    filt = {}
    if category and category != "all":
        filt["category"] = category
    if search:
        pattern = re.escape(search)
        filt["$or"] = [
            {"name": {"$regex": pattern, "$options": "i"}},
            {"description": {"$regex": pattern, "$options": "i"}},
        ]
    return filt


def list_products(
    catalog: CatalogStore,
    category: Optional[str] = None,
    search: Optional[str] = None,
    sort: Optional[str] = None,
    page: int = 1,
    limit: int = config.DEFAULT_PAGE_SIZE,
) -> dict:
    """
    Return one page of the catalog.

    `limit` is clamped to config.MAX_PAGE_SIZE; the page count is computed
    from the clamped value.
    """
    if page < 1:
        raise ValidationFailure("page must be at least 1")
    if limit < 1:
        raise ValidationFailure("limit must be at least 1")
    limit = min(limit, config.MAX_PAGE_SIZE)

    filt = build_product_filter(category, search)
    order = SORT_OPTIONS.get(sort or DEFAULT_SORT, SORT_OPTIONS[DEFAULT_SORT])
    products = catalog.find(filt, order, skip=(page - 1) * limit, limit=limit)
    total = catalog.count(filt)
    return {
        "products": products,
        "total_pages": math.ceil(total / limit),
        "current_page": page,
        "total": total,
    }


def get_product(catalog: CatalogStore, product_id: str) -> dict:
    product = catalog.get(product_id)
    if not product:
        raise NotFound("Product")
    return product


# Orders
def _release(catalog: CatalogStore, reserved: List[OrderItem]) -> None:
    for item in reserved:
        logger.warning("Releasing %d units of product %s", item.quantity, item.product)
        catalog.release_stock(item.product, item.quantity)


def place_order(catalog: CatalogStore, orders: OrderStore, user_id: str, payload: OrderCreate) -> dict:
    """
    Reserve stock for every line item, then persist the order as pending.

    Each reservation is a conditional decrement, so stock never goes below
    zero. If any line cannot be reserved, the lines already reserved for this
    order are released and InsufficientStock names the product. Line prices
    and the total are stored as supplied by the caller.
    """
    reserved: List[OrderItem] = []
    for item in payload.items:
        if catalog.reserve_stock(item.product, item.quantity) is None:
            _release(catalog, reserved)
            product = catalog.get(item.product)
            logger.info(
                "Rejected order for user %s: %s has fewer than %d units",
                user_id, item.product, item.quantity,
            )
            raise InsufficientStock(product["name"] if product else None)
        reserved.append(item)

    items = [OrderItem(product=str(to_object_id(i.product)), quantity=i.quantity, price=i.price) for i in payload.items]
    order = Order(user=user_id, items=items, total=payload.total, shipping_address=payload.shipping_address)
    try:
        order_doc = orders.create(order)
    except PyMongoError as e:
        logger.exception("Error creating order for user %s", user_id)
        _release(catalog, reserved)
        raise InternalFailure("Error creating order", e)
    logger.info("Placed order %s for user %s (%d items)", order_doc["_id"], user_id, len(items))
    return order_doc


def get_order(orders: OrderStore, order_id: str, user_id: str) -> dict:
    order = orders.get_for_user(order_id, user_id)
    if not order:
        raise NotFound("Order")
    return order


def expand_order_products(catalog: CatalogStore, order_docs: List[dict]) -> List[dict]:
    """Replace each line item's product id with the product document (None if deleted)."""
    product_ids = {item["product"] for o in order_docs for item in o.get("items", [])}
    products = catalog.get_many(product_ids)
    expanded = []
    for o in order_docs:
        items = [{**item, "product": products.get(item["product"])} for item in o.get("items", [])]
        expanded.append({**o, "items": items})
    return expanded


# Reviews
def submit_review(catalog: CatalogStore, reviews: ReviewStore, user_id: str, payload: ReviewCreate) -> dict:
    """Store a review and fold its rating into the product's average."""
    product = catalog.get(payload.product_id)
    if not product:
        raise NotFound("Product")
    product_id = str(product["_id"])
    if reviews.find(user_id, product_id):
        raise DuplicateReview()

    review = Review(user=user_id, product=product_id, rating=payload.rating, comment=payload.comment)
    try:
        review_doc = reviews.create(review)
    except DuplicateKeyError:
        raise DuplicateReview()

    updated = catalog.record_rating(product_id, payload.rating)
    if updated is not None:
        logger.info(
            "Review %s stored; product %s now %.2f over %d reviews",
            review_doc["_id"], product_id, updated["rating"], updated["reviews"],
        )
    return review_doc


def list_reviews(reviews: ReviewStore, users: UserStore, product_id: str) -> List[dict]:
    """Reviews for a product, newest first, with the reviewer's name attached."""
    review_docs = reviews.list_for_product(product_id)
    reviewers = users.get_many({r["user"] for r in review_docs})
    expanded = []
    for r in review_docs:
        reviewer = reviewers.get(r["user"])
        user = {"id": str(reviewer["_id"]), "name": reviewer["name"]} if reviewer else None
        expanded.append({**r, "user": user})
    return expanded


# Favorites
def _favorite_id(product_id: str) -> str:
    oid = to_object_id(product_id)
    if oid is None:
        raise ValidationFailure("Invalid product id")
    return str(oid)


def add_favorite(catalog: CatalogStore, users: UserStore, user_doc: dict, product_id: str) -> None:
    pid = _favorite_id(product_id)
    if not catalog.get(pid):
        raise NotFound("Product")
    users.add_favorite(user_doc["_id"], pid)


def remove_favorite(users: UserStore, user_doc: dict, product_id: str) -> None:
    """Drop a product from the user's favorites. Ids that can't be there are a no-op."""
    oid = to_object_id(product_id)
    if oid is None:
        return
    users.remove_favorite(user_doc["_id"], str(oid))


def list_favorites(catalog: CatalogStore, user_doc: dict) -> List[dict]:
    ids = user_doc.get("favorites", [])
    products = catalog.get_many(ids)
    return [products[i] for i in ids if i in products]


def search_suggestions(catalog: CatalogStore, q: Optional[str]) -> List[str]:
    if not q:
        return []
    return catalog.suggest_names(q, limit=5)
