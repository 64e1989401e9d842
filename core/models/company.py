"""Company (transit agency) model."""

from uuid import UUID

from pydantic import BaseModel


class Company(BaseModel):
    """Agency identity printed on invoices."""

    id: UUID
    name: str
    nif: str | None = None
    phone: str | None = None
    address: str | None = None

    model_config = {"from_attributes": True}
