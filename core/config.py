"""Billing configuration."""

from pydantic import BaseModel, Field


class BillingConfig(BaseModel):
    """
    Billing configuration.

    Amounts are whole GNF; rates are fractions (0.05 = 5%).
    """

    # Invoice numbering
    invoice_prefix: str = Field(
        default="FAC",
        description="Leading token of every invoice number",
        min_length=1,
        max_length=10,
    )
    invoice_number_width: int = Field(
        default=4,
        description="Zero-padded width of the yearly sequence",
        ge=1,
        le=8,
    )
    invoice_number_max_attempts: int = Field(
        default=3,
        description="How many times generation retries after a number collision",
        ge=1,
        le=10,
    )

    # Honoraires (agency service fee)
    honoraires_rate: float = Field(
        default=0.05,
        description="Default fee as a fraction of total disbursements",
        ge=0,
        le=1,
    )
    honoraires_minimum: int = Field(
        default=500_000,
        description="Floor applied to the default fee",
        ge=0,
    )

    # Tax
    default_tax_rate: float = Field(
        default=0.0,
        description="Tax rate applied to honoraires when the caller gives none",
        ge=0,
        le=1,
    )

    # Calendar and logging
    business_timezone: str = Field(
        default="Africa/Conakry",
        description="Timezone that decides the invoice year and date-only due dates",
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level for the API process",
    )
