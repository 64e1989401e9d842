"""The authenticated user a request acts for."""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel


class UserRole(str, Enum):
    """Agency staff roles."""

    DIRECTOR = "DIRECTOR"
    ACCOUNTANT = "ACCOUNTANT"
    AGENT = "AGENT"
    CLIENT = "CLIENT"


class Actor(BaseModel):
    """Identity handed over by the host's authentication layer."""

    user_id: UUID
    company_id: UUID
    role: UserRole
    name: str | None = None
