# marketingvoice/schemas/auth.py
from enum import Enum

from pydantic import Field

from .base import CamelModel


class UserType(str, Enum):
    GUEST = "guest"
    REGULAR = "regular"


class AuthUser(CamelModel):
    id: str
    email: str
    type: UserType


class Credentials(CamelModel):
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=64)
    password: str = Field(min_length=6, max_length=72)


class Token(CamelModel):
    access_token: str
    token_type: str = "bearer"
    user: AuthUser
