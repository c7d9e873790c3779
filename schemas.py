import datetime as dt
from decimal import Decimal
from typing import Optional, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
Role = Literal["user", "admin", "manager"]

# bounds of a numeric(10,2) column
MIN_AMOUNT = 0.01
MAX_AMOUNT = 99_999_999.99


def _two_places(v):
    if v is not None and Decimal(str(v)).as_tuple().exponent < -2:
        raise ValueError("at most 2 decimal places")
    return v


class CamelModel(BaseModel):
    # snake_case in Python, camelCase on the wire
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ---------- Plots ----------
class CreatePlot(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    area: float = Field(..., ge=MIN_AMOUNT, le=MAX_AMOUNT, description="square meters")
    planting_start: Optional[dt.date] = None

    _area_places = field_validator("area")(_two_places)


class UpdatePlot(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    area: Optional[float] = Field(None, ge=MIN_AMOUNT, le=MAX_AMOUNT)
    planting_start: Optional[dt.date] = None

    @field_validator("name", "area")
    @classmethod
    def _not_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but not null")
        return v

    _area_places = field_validator("area")(_two_places)


class PlotOut(CamelModel):
    id: str
    name: str
    area: float
    planting_start: Optional[dt.date] = None


class PlotSummary(CamelModel):
    plot_id: str
    total_kg: float


class Deleted(BaseModel):
    ok: bool = True


# ---------- Harvests ----------
class CreateHarvest(CamelModel):
    plot_id: str = Field(..., pattern=r"^[0-9a-fA-F-]{36}$")
    date: dt.date
    weight_kg: float = Field(..., ge=MIN_AMOUNT, le=MAX_AMOUNT)
    quality: Optional[str] = Field(None, max_length=64)  # e.g. A, B, C

    _weight_places = field_validator("weight_kg")(_two_places)


class HarvestOut(CamelModel):
    id: str
    plot_id: str
    date: dt.date
    weight_kg: float
    quality: Optional[str] = None
    plot: PlotOut


# ---------- Auth ----------
class Register(CamelModel):
    full_name: str = Field(..., min_length=1)
    email: str = Field(..., pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=6)


class Login(CamelModel):
    email: str = Field(..., pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=1)


class RecoverPassword(CamelModel):
    email: str = Field(..., pattern=EMAIL_PATTERN)


class UpdatePassword(CamelModel):
    new_password: str = Field(..., min_length=6)


class AdminCreateUser(CamelModel):
    email: str = Field(..., pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=6)
    full_name: Optional[str] = None
    role: Optional[Role] = None
    email_confirm: Optional[bool] = None


class SetRole(CamelModel):
    user_id: str = Field(..., min_length=1)
    role: Role


class Message(BaseModel):
    message: str
