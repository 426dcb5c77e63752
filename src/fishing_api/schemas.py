from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, confloat, conint, constr

# Column limits: INTEGER for money/price, NUMERIC(4,1) for weight.
MAX_INT = 2_147_483_647
MAX_WEIGHT = 999.9


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RegisterRequest(BaseModel):
    username: Optional[str] = Field(None, description="Account name (min 3 chars)")
    password: Optional[str] = Field(None, description="Password (min 6 chars)")


class LoginRequest(BaseModel):
    username: str = Field(..., description="Account name")
    password: str = Field(..., description="Password")


class AuthResponse(_CamelModel):
    success: bool = True
    user_id: int = Field(..., alias="userId")
    username: str
    access_token: str = Field(..., alias="accessToken", description="JWT access token")
    token_type: str = Field("bearer", alias="tokenType")


class GameData(BaseModel):
    id: int
    user_id: int
    money: int
    fishing_rod: str
    owned_rods: List[str]
    last_saved: datetime


class InventoryItem(BaseModel):
    id: int
    user_id: int
    fish_name: str
    rarity: str
    weight: float
    price: int
    colour: str
    favourite: bool
    caught_at: datetime


class LoginResponse(AuthResponse):
    game_data: Optional[GameData] = Field(None, alias="gameData")
    inventory: List[InventoryItem] = []


class SaveGameRequest(_CamelModel):
    user_id: int = Field(..., alias="userId")
    money: conint(ge=0, le=MAX_INT) = Field(..., description="Currency balance")
    fishing_rod: constr(min_length=1, max_length=50) = Field(..., alias="fishingRod", description="Equipped rod")
    owned_rods: List[constr(min_length=1, max_length=50)] = Field(..., alias="ownedRods")


class Fish(BaseModel):
    name: constr(min_length=1, max_length=100)
    rarity: constr(min_length=1, max_length=50)
    weight: confloat(ge=0, le=MAX_WEIGHT) = Field(..., description="Weight, one fractional digit is stored")
    price: conint(ge=0, le=MAX_INT)
    color: constr(min_length=1, max_length=20)


class AddFishRequest(_CamelModel):
    user_id: int = Field(..., alias="userId")
    fish: Fish


class AddFishResponse(_CamelModel):
    success: bool = True
    fish_id: int = Field(..., alias="fishId")


class ToggleFavouriteRequest(_CamelModel):
    fish_id: int = Field(..., alias="fishId")
    favourite: bool


class SellFishRequest(_CamelModel):
    user_id: int = Field(..., alias="userId")


class SellFishResponse(_CamelModel):
    success: bool = True
    sold_count: int = Field(..., alias="soldCount")


class SuccessResponse(BaseModel):
    success: bool = True
