"""
storefront/schemas/principal.py
Roles and the Identity model resolved from the identity provider.
"""
from typing import Literal, Optional
from pydantic import BaseModel, Field

Role = Literal["guest", "user", "admin"]


class Identity(BaseModel):
    id: str = Field(..., description="Firebase UID")
    email: Optional[str] = Field(None, description="E-mail (if any)")
    role: Role = Field("user", description="guest | user | admin")

    @property
    def is_guest(self) -> bool:
        return self.role == "guest"
