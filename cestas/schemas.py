"""
Pydantic schemas for the distribution API.
"""

from __future__ import annotations

from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, Field

from cestas.constants import DEFAULT_BLOCK_PERIOD_DAYS


class LoginRequest(BaseModel):
    email: str = Field(..., max_length=254)
    password: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    id: str
    email: str
    name: str
    role: str
    institution_id: Optional[str] = None
    institution: Optional["InstitutionResponse"] = None


class LoginResponse(BaseModel):
    token: str
    expires_at: float
    user: UserResponse


class CreateUserRequest(BaseModel):
    email: str = Field(..., max_length=254)
    name: str = Field(..., min_length=1, max_length=200)
    password: str = Field(..., min_length=6)
    role: Literal["admin", "normal"] = "normal"
    institution_id: Optional[str] = None


class FamilyCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    address: str = Field(..., max_length=500)
    phone: str = Field(..., max_length=40)
    members: int = Field(1, ge=1)
    income: float = Field(0.0, ge=0)


class FamilyUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    address: Optional[str] = Field(None, max_length=500)
    phone: Optional[str] = Field(None, max_length=40)
    members: Optional[int] = Field(None, ge=1)
    income: Optional[float] = Field(None, ge=0)


class FamilyResponse(BaseModel):
    id: str
    name: str
    address: str
    phone: str
    members: int
    income: float
    status: str
    blocked_until: Optional[date] = None
    created_at: float


class ListFamiliesResponse(BaseModel):
    families: list[FamilyResponse]


class InstitutionCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    address: str = Field(..., max_length=500)
    phone: str = Field(..., max_length=40)
    baskets: int = Field(0, ge=0)


class InstitutionUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    address: Optional[str] = Field(None, max_length=500)
    phone: Optional[str] = Field(None, max_length=40)


class InstitutionResponse(BaseModel):
    id: str
    name: str
    address: str
    phone: str
    inventory: dict[str, int]
    created_at: float


class ListInstitutionsResponse(BaseModel):
    institutions: list[InstitutionResponse]


class InventoryItemRequest(BaseModel):
    item: str = Field(..., min_length=1, max_length=100)
    quantity: int = Field(..., gt=0)


class DeliveryRequest(BaseModel):
    family_id: str
    basket_count: int = Field(1, ge=1)
    other_items: Optional[str] = Field(None, max_length=1024)
    block_period_days: int = DEFAULT_BLOCK_PERIOD_DAYS
    institution_id: Optional[str] = None


class DeliveryResponse(BaseModel):
    id: str
    family_id: str
    family_name: str
    institution_id: str
    institution_name: str
    delivery_date: date
    items: dict
    created_at: float


class ListDeliveriesResponse(BaseModel):
    deliveries: list[DeliveryResponse]


class DeliveryResultResponse(BaseModel):
    delivery: DeliveryResponse
    family: FamilyResponse
    institution: InstitutionResponse


class MonthlyBaskets(BaseModel):
    month: str
    baskets: int


class DashboardResponse(BaseModel):
    deliveries: int
    institutions: int
    active_families: int
    blocked_families: int
    monthly_baskets: list[MonthlyBaskets]
    recent_deliveries: list[DeliveryResponse]


class ReportSummaryResponse(BaseModel):
    active_families: int
    blocked_families: int
    institutions: int
    total_baskets: int
    deliveries_this_month: int


class ReportArchiveResponse(BaseModel):
    path: str
    url: str


class ReleaseExpiredResponse(BaseModel):
    released: int


class SeedResponse(BaseModel):
    families_created: int
    institutions_created: int


class StatusResponse(BaseModel):
    status: Literal["ok"]


UserResponse.model_rebuild()
