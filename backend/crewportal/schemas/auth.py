from typing import Optional

from pydantic import BaseModel


class CurrentUser(BaseModel):
    """Identity returned by the identity provider."""
    id: str
    email: str


class TokenData(BaseModel):
    sub: Optional[str] = None
    email: Optional[str] = None
