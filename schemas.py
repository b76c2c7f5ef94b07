"""
Record schemas

Pydantic models for rows of the relational store and for the claims carried
inside a session token. Table layouts live in ``database.py``:
- User -> "users" table
- Product -> "products" table
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class PublicUser(BaseModel):
    """User projection that is safe to return to clients."""
    id: int
    full_name: str
    email: str


class User(PublicUser):
    """
    Users table row
    The password hash never leaves the service; use ``public()`` for responses.
    """
    password: str = Field(..., description="bcrypt password hash")
    created_at: Optional[datetime] = None

    def public(self) -> PublicUser:
        return PublicUser(id=self.id, full_name=self.full_name, email=self.email)


class Product(BaseModel):
    id: int
    name: str
    price: float
    image_url: Optional[str] = None
    category: Optional[str] = None
    created_at: Optional[datetime] = None


class TokenClaims(BaseModel):
    id: int
    email: str
    iat: int = Field(..., description="Issued at, unix seconds")
    exp: int = Field(..., description="Expires at, unix seconds")
