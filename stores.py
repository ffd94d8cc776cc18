"""Collection wrappers for users, products, orders and reviews."""

import re
from typing import Iterable, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ReturnDocument
from pymongo.database import Database

from database import create_document, utcnow
from errors import InternalFailure
from schemas import Order, Product, Review, User

NEWEST_FIRST = [("created_at", -1), ("_id", -1)]
RATING_WRITE_ATTEMPTS = 10


def to_object_id(value) -> Optional[ObjectId]:
    """Parse an id string, returning None when it is not a valid ObjectId."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def to_public_doc(doc: Optional[dict]) -> Optional[dict]:
    if not doc:
        return doc
    d = {**doc}
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    return d


class Store:
    collection_name = ""

    def __init__(self, db: Database):
        self.db = db
        self.collection = db[self.collection_name]

    def get(self, doc_id) -> Optional[dict]:
        oid = to_object_id(doc_id)
        if oid is None:
            return None
        return self.collection.find_one({"_id": oid})

    def get_many(self, doc_ids: Iterable) -> dict:
        """Fetch several documents at once, keyed by string id. Unknown ids are skipped."""
        oids = [oid for oid in (to_object_id(i) for i in doc_ids) if oid is not None]
        if not oids:
            return {}
        return {str(d["_id"]): d for d in self.collection.find({"_id": {"$in": oids}})}

    def _insert(self, data) -> dict:
        doc_id = create_document(self.db, self.collection_name, data)
        return self.collection.find_one({"_id": ObjectId(doc_id)})


class CatalogStore(Store):
    collection_name = "product"

    def create(self, product: Product) -> dict:
        return self._insert(product)

    def find(self, filter_dict: dict, sort: list, skip: int = 0, limit: int = 0) -> List[dict]:
        cursor = self.collection.find(filter_dict).sort(sort).skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)

    def count(self, filter_dict: dict) -> int:
        return self.collection.count_documents(filter_dict)

    def reserve_stock(self, product_id, quantity: int) -> Optional[dict]:
        """
        Take `quantity` units out of stock in a single conditional update.

        Returns the updated product, or None when the product is missing or
        holds fewer than `quantity` units. Stock is left untouched in that case.
        """
        oid = to_object_id(product_id)
        if oid is None:
            return None
        return self.collection.find_one_and_update(
            {"_id": oid, "stock": {"$gte": quantity}},
            {"$inc": {"stock": -quantity}, "$set": {"updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )

    def release_stock(self, product_id, quantity: int) -> None:
        self.collection.update_one(
            {"_id": to_object_id(product_id)},
            {"$inc": {"stock": quantity}, "$set": {"updated_at": utcnow()}},
        )

    def record_rating(self, product_id, rating: int) -> Optional[dict]:
        """
        Fold one more review rating into the product's review-set average.

        `rating_sum` and `rating_count` cover only stored reviews, whatever
        display values the product was created with. Sum, count, `rating` and
        `reviews` are written in one update that only applies if nobody else
        changed the sum/count since they were read; otherwise it re-reads.
        """
        oid = to_object_id(product_id)
        if oid is None:
            return None
        for _ in range(RATING_WRITE_ATTEMPTS):
            doc = self.collection.find_one({"_id": oid}, {"rating_sum": 1, "rating_count": 1})
            if doc is None:
                return None
            # None also matches a missing field
            seen_sum = doc.get("rating_sum")
            seen_count = doc.get("rating_count")
            total = (seen_sum or 0) + rating
            count = (seen_count or 0) + 1
            updated = self.collection.find_one_and_update(
                {"_id": oid, "rating_sum": seen_sum, "rating_count": seen_count},
                {"$set": {
                    "rating_sum": total,
                    "rating_count": count,
                    "rating": total / count,
                    "reviews": count,
                    "updated_at": utcnow(),
                }},
                return_document=ReturnDocument.AFTER,
            )
            if updated is not None:
                return updated
        raise InternalFailure(f"Could not update rating for product {product_id}")

    def categories(self) -> List[str]:
        return sorted(self.collection.distinct("category"))

    def suggest_names(self, text: str, limit: int = 5) -> List[str]:
        cursor = self.collection.find(
            {"name": {"$regex": re.escape(text), "$options": "i"}},
            {"name": 1},
        ).limit(limit)
        return [d["name"] for d in cursor]


class OrderStore(Store):
    collection_name = "order"

    def create(self, order: Order) -> dict:
        return self._insert(order)

    def list_for_user(self, user_id: str) -> List[dict]:
        return list(self.collection.find({"user": user_id}).sort(NEWEST_FIRST))

    def get_for_user(self, order_id, user_id: str) -> Optional[dict]:
        oid = to_object_id(order_id)
        if oid is None:
            return None
        return self.collection.find_one({"_id": oid, "user": user_id})


class UserStore(Store):
    collection_name = "user"

    def create(self, user: User) -> dict:
        return self._insert(user)

    def find_by_email(self, email: str) -> Optional[dict]:
        return self.collection.find_one({"email": email})

    def update_profile(self, user_id, changes: dict) -> Optional[dict]:
        return self.collection.find_one_and_update(
            {"_id": to_object_id(user_id)},
            {"$set": {**changes, "updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )

    def add_favorite(self, user_id, product_id: str) -> None:
        self.collection.update_one({"_id": to_object_id(user_id)}, {"$addToSet": {"favorites": product_id}})

    def remove_favorite(self, user_id, product_id: str) -> None:
        self.collection.update_one({"_id": to_object_id(user_id)}, {"$pull": {"favorites": product_id}})


class ReviewStore(Store):
    collection_name = "review"

    def create(self, review: Review) -> dict:
        return self._insert(review)

    def find(self, user_id: str, product_id: str) -> Optional[dict]:
        return self.collection.find_one({"user": user_id, "product": product_id})

    def list_for_product(self, product_id: str) -> List[dict]:
        return list(self.collection.find({"product": product_id}).sort(NEWEST_FIRST))
