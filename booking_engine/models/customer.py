"""Pydantic models for guest identity lookups."""

from datetime import date

from pydantic import BaseModel


class CustomerSummary(BaseModel):
    """Existing customer record returned by the identity lookup."""

    id: int
    customer_code: str | None = None  # e.g. CUS0042
    first_name: str
    last_name: str | None = None
    phone: str | None = None
    email: str | None = None
    is_vip: bool = False

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


class SuggestedGuestData(BaseModel):
    """Guest fields derived from an identity number, used to prefill a new customer."""

    gender: str | None = None
    date_of_birth: date | None = None
    nationality: str | None = None


class IdentityValidationResult(BaseModel):
    """Result of the customer identity validation collaborator."""

    exists: bool
    is_valid_format: bool = False
    customer: CustomerSummary | None = None
    suggested_data: SuggestedGuestData | None = None
