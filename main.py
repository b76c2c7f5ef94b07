import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Header, Path, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from database import ShopStore
from errors import AuthError, NotFound, StoreError, ValidationError, install_error_handlers
from logger import setup_logger
from schemas import Product, PublicUser, TokenClaims
from security import PasswordHasher, TokenExpired, TokenInvalid, TokenService, bearer_token
from settings import Settings, get_settings

logger = logging.getLogger(__name__)


# Models for requests
class RegisterRequest(BaseModel):
    full_name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class LoginRequest(BaseModel):
    # Absent credentials fall through to the generic login failure
    email: str = ""
    password: str = ""


class ProductRequest(BaseModel):
    name: str = Field(..., min_length=1)
    price: float
    image_url: Optional[str] = None
    category: Optional[str] = None


# Largest id a signed 64-bit INTEGER column holds
MAX_ID = 2**63 - 1


# Models for responses
class MessageResponse(BaseModel):
    message: str


class LoginResponse(BaseModel):
    message: str
    token: str
    user: PublicUser


router = APIRouter()


# Dependencies

def get_store(request: Request) -> ShopStore:
    return request.app.state.store


def get_tokens(request: Request) -> TokenService:
    return request.app.state.tokens


def get_hasher(request: Request) -> PasswordHasher:
    return request.app.state.hasher


def require_user(
    authorization: Optional[str] = Header(None),
    tokens: TokenService = Depends(get_tokens),
) -> TokenClaims:
    """Authorization gate for every product route."""
    if not authorization:
        raise AuthError("Authorization header missing")
    token = bearer_token(authorization)
    if not token:
        raise AuthError("Token missing")
    try:
        return tokens.verify(token)
    except TokenExpired:
        logger.debug("Rejected expired token")
        raise AuthError("Token expired")
    except TokenInvalid as e:
        logger.debug("Rejected invalid token: %s", e)
        raise AuthError("Invalid token", status_code=403)


@router.get("/")
def read_root():
    return {"message": "Shop API ready"}


@router.get("/test")
def test_database(store: ShopStore = Depends(get_store)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": store.safe_url,
        "connection_status": "Not Connected",
        "tables": [],
    }
    try:
        store.ping()
        response["database"] = "✅ Connected"
        response["connection_status"] = "Connected"
        response["tables"] = store.table_names()
    except StoreError as e:
        response["database"] = f"⚠️ {e.message}"
    return response


# Auth endpoints
@router.post("/register", response_model=MessageResponse)
def register(
    payload: RegisterRequest,
    store: ShopStore = Depends(get_store),
    hasher: PasswordHasher = Depends(get_hasher),
):
    if store.get_user_by_email(payload.email):
        raise ValidationError("Email already registered")
    try:
        password_hash = hasher.hash(payload.password)
    except ValueError as e:
        logger.error("Password hashing failed for %s: %s", payload.email, e)
        raise StoreError("Registration failed") from e
    user_id = store.create_user(payload.full_name, payload.email, password_hash)
    logger.info("Registered user %s (%s)", user_id, payload.email)
    return {"message": "User registered successfully"}


@router.post("/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    store: ShopStore = Depends(get_store),
    hasher: PasswordHasher = Depends(get_hasher),
    tokens: TokenService = Depends(get_tokens),
):
    logger.info("Login attempt for: %s", payload.email)
    user = store.get_user_by_email(payload.email)
    if not user or not hasher.verify(payload.password, user.password):
        raise AuthError("Invalid email or password")
    token = tokens.issue(user.id, user.email)
    return {"message": "Login successful", "token": token, "user": user.public()}


# Products endpoints
@router.get("/products", response_model=List[Product])
def list_products(
    claims: TokenClaims = Depends(require_user),
    store: ShopStore = Depends(get_store),
):
    return store.list_products()


@router.get("/products/{product_id}", response_model=Product)
def get_product(
    product_id: int = Path(..., ge=1, le=MAX_ID),
    claims: TokenClaims = Depends(require_user),
    store: ShopStore = Depends(get_store),
):
    product = store.get_product(product_id)
    if product is None:
        raise NotFound("Product not found")
    return product


@router.post("/products", response_model=MessageResponse)
def create_product(
    payload: ProductRequest,
    claims: TokenClaims = Depends(require_user),
    store: ShopStore = Depends(get_store),
):
    product_id = store.create_product(payload.name, payload.price, payload.image_url, payload.category)
    logger.info("User %s added product %s", claims.id, product_id)
    return {"message": "Product added successfully"}


@router.put("/products/{product_id}", response_model=MessageResponse)
def update_product(
    *,
    product_id: int = Path(..., ge=1, le=MAX_ID),
    payload: ProductRequest,
    claims: TokenClaims = Depends(require_user),
    store: ShopStore = Depends(get_store),
):
    changed = store.update_product(product_id, payload.name, payload.price, payload.image_url, payload.category)
    if changed == 0:
        logger.warning("Update of product %s matched no rows", product_id)
    return {"message": "Product updated successfully"}


@router.delete("/products/{product_id}", response_model=MessageResponse)
def delete_product(
    product_id: int = Path(..., ge=1, le=MAX_ID),
    claims: TokenClaims = Depends(require_user),
    store: ShopStore = Depends(get_store),
):
    deleted = store.delete_product(product_id)
    if deleted == 0:
        logger.warning("Delete of product %s matched no rows", product_id)
    return {"message": "Product deleted successfully"}


def create_app(settings: Optional[Settings] = None, store: Optional[ShopStore] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logger(level=settings.log_level)

    store = store or ShopStore.from_settings(settings)
    if settings.create_schema:
        store.create_schema()
    logger.info("Using database %s", store.safe_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        app.state.store.dispose()

    app = FastAPI(title="Shop API", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.tokens = TokenService(
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        expires_in=settings.jwt_expires_in,
    )
    app.state.hasher = PasswordHasher(rounds=settings.bcrypt_rounds)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(app)
    app.include_router(router)
    return app


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)
