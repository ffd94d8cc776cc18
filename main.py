import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database
from pymongo.errors import PyMongoError

import config
import services
from auth import get_current_user
from database import close_db, create_document, ensure_indexes, get_db, ping
from errors import InternalFailure, StorefrontError, ValidationFailure
from schemas import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    OrderCreate,
    OrderOut,
    Product,
    ProductCreate,
    ProductOut,
    ProductPage,
    ProfileOut,
    ProfileUpdate,
    RegisterRequest,
    ReviewCreate,
    ReviewOut,
    UserSummary,
)
from stores import CatalogStore, OrderStore, ReviewStore, UserStore, to_public_doc

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

SAMPLE_PRODUCTS = [
    {
        "name": "Radiant Glow Foundation",
        "category": "makeup",
        "price": 45.99,
        "original_price": 59.99,
        "rating": 4.8,
        "reviews": 1234,
        "image": "https://images.unsplash.com/photo-1596462502278-27bfdc403348?w=300&h=300&fit=crop",
        "description": "Full coverage foundation with a natural, radiant finish",
        "tag": "Bestseller",
        "stock": 50,
    },
    {
        "name": "Hydrating Face Serum",
        "category": "skincare",
        "price": 32.50,
        "original_price": 42.50,
        "rating": 4.9,
        "reviews": 892,
        "image": "https://images.unsplash.com/photo-1620916566398-39f1143ab7be?w=300&h=300&fit=crop",
        "description": "Vitamin C serum for glowing, youthful skin",
        "tag": "New",
        "stock": 75,
    },
    {
        "name": "Velvet Matte Lipstick",
        "category": "makeup",
        "price": 24.99,
        "original_price": 29.99,
        "rating": 4.7,
        "reviews": 567,
        "image": "https://images.unsplash.com/photo-1586495777744-4413f21062fa?w=300&h=300&fit=crop",
        "description": "Long-lasting matte lipstick in rich, vibrant colors",
        "tag": "Limited Edition",
        "stock": 30,
    },
    {
        "name": "Enchanted Rose Perfume",
        "category": "fragrance",
        "price": 89.99,
        "original_price": 120.00,
        "rating": 4.6,
        "reviews": 234,
        "image": "https://images.unsplash.com/photo-1541643600914-78b084683601?w=300&h=300&fit=crop",
        "description": "Elegant floral fragrance with notes of rose and jasmine",
        "tag": "Premium",
        "stock": 25,
    },
    {
        "name": "Nourishing Hair Mask",
        "category": "haircare",
        "price": 28.75,
        "original_price": 35.00,
        "rating": 4.5,
        "reviews": 445,
        "image": "https://images.unsplash.com/photo-1559056199-641a0ac8b55e?w=300&h=300&fit=crop",
        "description": "Deep conditioning treatment for silky, healthy hair",
        "tag": "Sale",
        "stock": 60,
    },
    {
        "name": "Glowing Eye Palette",
        "category": "makeup",
        "price": 52.00,
        "original_price": 65.00,
        "rating": 4.8,
        "reviews": 789,
        "image": "https://images.unsplash.com/photo-1512496015851-a90fb38ba796?w=300&h=300&fit=crop",
        "description": "12 stunning shades for every occasion",
        "tag": "Trending",
        "stock": 40,
    },
]


def seed_sample_products(db: Database) -> int:
    """Insert the sample catalog if the product collection is empty. Returns the number inserted."""
    if db["product"].count_documents({}) > 0:
        return 0
    for d in SAMPLE_PRODUCTS:
        create_document(db, "product", Product(**d))
    logger.info("Sample products inserted")
    return len(SAMPLE_PRODUCTS)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        db = get_db()
        ensure_indexes(db)
        if config.SEED_SAMPLE_DATA:
            seed_sample_products(db)
    except PyMongoError:
        logger.exception("Error initializing data")
    yield
    close_db()


app = FastAPI(title="Glamify Storefront API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error handling
def error_response(exc: StorefrontError) -> JSONResponse:
    content = {"message": exc.message, "errorType": type(exc).__name__}
    if isinstance(exc, ValidationFailure) and exc.errors:
        content["errors"] = exc.errors
    if isinstance(exc, InternalFailure):
        content["error"] = exc.error
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    return error_response(exc)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": [str(part) for part in e.get("loc", ())], "msg": e.get("msg"), "type": e.get("type")}
        for e in exc.errors()
    ]
    return error_response(ValidationFailure(errors=errors))


@app.exception_handler(PyMongoError)
async def database_error_handler(request: Request, exc: PyMongoError) -> JSONResponse:
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return error_response(InternalFailure("Database error", exc))


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(InternalFailure("Something went wrong!", exc))


# Store dependencies
def get_catalog(db: Database = Depends(get_db)) -> CatalogStore:
    return CatalogStore(db)


def get_orders(db: Database = Depends(get_db)) -> OrderStore:
    return OrderStore(db)


def get_users(db: Database = Depends(get_db)) -> UserStore:
    return UserStore(db)


def get_reviews(db: Database = Depends(get_db)) -> ReviewStore:
    return ReviewStore(db)


def user_summary(user_doc: dict) -> UserSummary:
    return UserSummary(id=str(user_doc["_id"]), name=user_doc["name"], email=user_doc["email"])


@app.get("/")
def root():
    return {"status": "ok", "service": "storefront-backend"}


@app.get("/test")
def test_database(db: Database = Depends(get_db)):
    status = {
        "backend": "running",
        "database": "not-configured",
        "collections": [],
    }
    try:
        status["collections"] = ping(db)[:10]
        status["database"] = "connected"
    except PyMongoError as e:
        status["database"] = f"error: {str(e)[:80]}"
    return status


api = APIRouter(prefix="/api")


# Auth Endpoints
@api.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(payload: RegisterRequest, users: UserStore = Depends(get_users)):
    user_doc, token = services.register_user(users, payload)
    return AuthResponse(message="User created successfully", token=token, user=user_summary(user_doc))


@api.post("/auth/login", response_model=AuthResponse)
def login(payload: LoginRequest, users: UserStore = Depends(get_users)):
    user_doc, token = services.login_user(users, payload)
    return AuthResponse(message="Login successful", token=token, user=user_summary(user_doc))


# Product Endpoints
@api.get("/products", response_model=ProductPage)
def list_products(
    category: Optional[str] = None,
    search: Optional[str] = None,
    sort: Optional[str] = None,
    page: int = Query(1),
    limit: int = Query(config.DEFAULT_PAGE_SIZE),
    catalog: CatalogStore = Depends(get_catalog),
):
    result = services.list_products(catalog, category, search, sort, page, limit)
    result["products"] = [ProductOut.model_validate(to_public_doc(p)) for p in result["products"]]
    return ProductPage(**result)


@api.get("/products/{product_id}", response_model=ProductOut)
def get_product(product_id: str, catalog: CatalogStore = Depends(get_catalog)):
    return ProductOut.model_validate(to_public_doc(services.get_product(catalog, product_id)))


@api.post("/products", response_model=ProductOut, status_code=201)
def create_product(payload: ProductCreate, catalog: CatalogStore = Depends(get_catalog)):
    doc = catalog.create(Product(**payload.model_dump()))
    return ProductOut.model_validate(to_public_doc(doc))


# Orders
@api.post("/orders", response_model=OrderOut, status_code=201)
def create_order(
    payload: OrderCreate,
    user=Depends(get_current_user),
    catalog: CatalogStore = Depends(get_catalog),
    orders: OrderStore = Depends(get_orders),
):
    order_doc = services.place_order(catalog, orders, str(user["_id"]), payload)
    return OrderOut.model_validate(to_public_doc(order_doc))


def _order_out(doc: dict) -> OrderOut:
    doc = to_public_doc(doc)
    doc["items"] = [{**item, "product": to_public_doc(item["product"])} for item in doc["items"]]
    return OrderOut.model_validate(doc)


@api.get("/orders", response_model=List[OrderOut])
def list_orders(
    user=Depends(get_current_user),
    catalog: CatalogStore = Depends(get_catalog),
    orders: OrderStore = Depends(get_orders),
):
    docs = orders.list_for_user(str(user["_id"]))
    return [_order_out(d) for d in services.expand_order_products(catalog, docs)]


@api.get("/orders/{order_id}", response_model=OrderOut)
def get_order(
    order_id: str,
    user=Depends(get_current_user),
    catalog: CatalogStore = Depends(get_catalog),
    orders: OrderStore = Depends(get_orders),
):
    doc = services.get_order(orders, order_id, str(user["_id"]))
    return _order_out(services.expand_order_products(catalog, [doc])[0])


# Favorites
@api.post("/favorites/{product_id}", response_model=MessageResponse)
def add_favorite(
    product_id: str,
    user=Depends(get_current_user),
    catalog: CatalogStore = Depends(get_catalog),
    users: UserStore = Depends(get_users),
):
    services.add_favorite(catalog, users, user, product_id)
    return MessageResponse(message="Product added to favorites")


@api.delete("/favorites/{product_id}", response_model=MessageResponse)
def remove_favorite(product_id: str, user=Depends(get_current_user), users: UserStore = Depends(get_users)):
    services.remove_favorite(users, user, product_id)
    return MessageResponse(message="Product removed from favorites")


@api.get("/favorites", response_model=List[ProductOut])
def list_favorites(user=Depends(get_current_user), catalog: CatalogStore = Depends(get_catalog)):
    return [ProductOut.model_validate(to_public_doc(p)) for p in services.list_favorites(catalog, user)]


# Reviews
@api.post("/reviews", response_model=ReviewOut, status_code=201)
def create_review(
    payload: ReviewCreate,
    user=Depends(get_current_user),
    catalog: CatalogStore = Depends(get_catalog),
    reviews: ReviewStore = Depends(get_reviews),
):
    review_doc = services.submit_review(catalog, reviews, str(user["_id"]), payload)
    return ReviewOut.model_validate(to_public_doc(review_doc))


@api.get("/reviews/{product_id}", response_model=List[ReviewOut])
def list_reviews(
    product_id: str,
    reviews: ReviewStore = Depends(get_reviews),
    users: UserStore = Depends(get_users),
):
    return [ReviewOut.model_validate(to_public_doc(r)) for r in services.list_reviews(reviews, users, product_id)]


# Catalog helpers
@api.get("/categories", response_model=List[str])
def list_categories(catalog: CatalogStore = Depends(get_catalog)):
    return catalog.categories()


@api.get("/search/suggestions", response_model=List[str])
def search_suggestions(q: Optional[str] = None, catalog: CatalogStore = Depends(get_catalog)):
    return services.search_suggestions(catalog, q)


# User profile
def _profile_out(user_doc: dict) -> ProfileOut:
    return ProfileOut.model_validate(to_public_doc(user_doc))


@api.get("/user/profile", response_model=ProfileOut)
def get_profile(user=Depends(get_current_user)):
    return _profile_out(user)


@api.put("/user/profile", response_model=ProfileOut)
def update_profile(payload: ProfileUpdate, user=Depends(get_current_user), users: UserStore = Depends(get_users)):
    return _profile_out(services.update_profile(users, user, payload))


app.include_router(api)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
