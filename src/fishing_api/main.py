import logging
import os
from contextlib import contextmanager
from typing import Any, Dict, Iterator

import psycopg2
import uvicorn
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fishing_api import db, repository
from fishing_api.auth_utils import create_user_access_token, ensure_owner, get_current_user, hash_password, verify_password
from fishing_api.errors import (
    InvalidCredentialsError,
    NotFoundError,
    ServerError,
    ValidationError,
    register_error_handlers,
)
from fishing_api.schemas import (
    AddFishRequest,
    AddFishResponse,
    AuthResponse,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    SaveGameRequest,
    SellFishRequest,
    SellFishResponse,
    SuccessResponse,
    ToggleFavouriteRequest,
)

logger = logging.getLogger(__name__)

MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6

openapi_tags = [
    {"name": "Health", "description": "Service health checks."},
    {"name": "Auth", "description": "Account registration and login."},
    {"name": "Game", "description": "Player progress: currency, rods and caught fish."},
]

app = FastAPI(
    title="Fishing Game API",
    description=(
        "Backend API for the fishing game: accounts and persisted player progress.\n\n"
        "Auth: register/login return an access token; send it as `Authorization: Bearer <token>` "
        "on the game endpoints."
    ),
    version="1.0.0",
    openapi_tags=openapi_tags,
)

# CORS: allow all by default. Restrict via CORS_ALLOW_ORIGINS env (comma separated).
allow_origins = ["*"]
env_val = os.getenv("CORS_ALLOW_ORIGINS")
if env_val:
    allow_origins = [o.strip() for o in env_val.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)


@contextmanager
def _store_errors(message: str) -> Iterator[None]:
    """Turn unexpected database failures into a ServerError carrying ``message``."""
    try:
        yield
    except psycopg2.Error:
        logger.exception(message)
        raise ServerError(message)


@app.on_event("startup")
def _startup() -> None:
    # Failure here aborts server startup.
    db.init_database()


@app.on_event("shutdown")
def _shutdown() -> None:
    db.close_db_pool()


@app.get("/", tags=["Health"], summary="Health check")
def health_check() -> Dict[str, str]:
    """Health check endpoint used by the game client to verify backend availability."""
    return {"message": "Healthy"}


# =========================
# Auth
# =========================

@app.post("/api/register", response_model=AuthResponse, tags=["Auth"], summary="Register")
def register(payload: RegisterRequest) -> AuthResponse:
    """Create an account with default game state and return an access token."""
    if not payload.username or len(payload.username) < MIN_USERNAME_LENGTH:
        raise ValidationError(f"Username must be at least {MIN_USERNAME_LENGTH} characters")
    if not payload.password or len(payload.password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    with _store_errors("Server error"):
        user = repository.create_account(payload.username, hash_password(payload.password))

    logger.info("Registered player %s (id=%s)", user["username"], user["id"])
    return AuthResponse(
        user_id=user["id"],
        username=user["username"],
        access_token=create_user_access_token(user["id"], user["username"]),
    )


@app.post("/api/login", response_model=LoginResponse, tags=["Auth"], summary="Login")
def login(payload: LoginRequest) -> LoginResponse:
    """Authenticate a player and return their game state and inventory."""
    with _store_errors("Server error"):
        user = repository.find_user_by_username(payload.username)
        if not user or not verify_password(payload.password, user["password"]):
            logger.warning("Failed login for %s", payload.username)
            raise InvalidCredentialsError()

        game_data = repository.get_game_data(user["id"])
        inventory = repository.list_inventory(user["id"])

    return LoginResponse(
        user_id=user["id"],
        username=user["username"],
        access_token=create_user_access_token(user["id"], user["username"]),
        game_data=game_data,
        inventory=inventory,
    )


# =========================
# Game
# =========================

@app.post("/api/save-game", response_model=SuccessResponse, tags=["Game"], summary="Save game state")
def save_game(payload: SaveGameRequest, user: Dict[str, Any] = Depends(get_current_user)) -> SuccessResponse:
    """Overwrite the player's currency, equipped rod and owned rods."""
    ensure_owner(payload.user_id, user)
    with _store_errors("Failed to save game data"):
        affected = repository.save_game_data(payload.user_id, payload.money, payload.fishing_rod, payload.owned_rods)
    if affected == 0:
        raise NotFoundError("Game data not found")
    return SuccessResponse()


@app.post("/api/add-fish", response_model=AddFishResponse, tags=["Game"], summary="Add caught fish")
def add_fish(payload: AddFishRequest, user: Dict[str, Any] = Depends(get_current_user)) -> AddFishResponse:
    """Store a caught fish in the player's inventory."""
    ensure_owner(payload.user_id, user)
    fish = payload.fish
    with _store_errors("Failed to add fish"):
        fish_id = repository.add_fish(payload.user_id, fish.name, fish.rarity, fish.weight, fish.price, fish.color)
    return AddFishResponse(fish_id=fish_id)


@app.post("/api/toggle-favourite", response_model=SuccessResponse, tags=["Game"], summary="Set favourite flag")
def toggle_favourite(payload: ToggleFavouriteRequest, user: Dict[str, Any] = Depends(get_current_user)) -> SuccessResponse:
    """Mark or unmark one of the player's fish as favourite (kept when selling)."""
    with _store_errors("Failed to update fish"):
        affected = repository.set_favourite(payload.fish_id, int(user["id"]), payload.favourite)
    if affected == 0:
        raise NotFoundError("Fish not found")
    return SuccessResponse()


@app.post("/api/sell-fish", response_model=SellFishResponse, tags=["Game"], summary="Sell fish")
def sell_fish(payload: SellFishRequest, user: Dict[str, Any] = Depends(get_current_user)) -> SellFishResponse:
    """Sell (delete) every non-favourite fish of the player."""
    ensure_owner(payload.user_id, user)
    with _store_errors("Failed to sell fish"):
        sold = repository.sell_unfavourited(payload.user_id)
    logger.info("Player %s sold %d fish", payload.user_id, sold)
    return SellFishResponse(sold_count=sold)


# PUBLIC_INTERFACE
def run() -> None:
    """Serve the API with uvicorn on HOST:PORT (default port 3001)."""
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "3001"))
    logger.info("Starting fishing game API on %s:%s", host, port)
    uvicorn.run(app, host=host, port=port)
