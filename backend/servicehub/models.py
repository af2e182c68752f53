from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

RequestStatus = Literal[
    "pending",
    "quoted",
    "accepted",
    "in_progress",
    "completed",
    "cancelled",
]


class Category(BaseModel):
    id: int
    name: str


class ServiceProvider(BaseModel):
    id: int
    business_name: str
    city: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    category_ids: list[int] = Field(default_factory=list)
    is_verified: bool = False
    credits: int = Field(default=0, ge=0)
    average_rating: Optional[float] = Field(default=None, ge=0, le=5)
    completed_jobs: Optional[int] = None
    response_time_hours: Optional[float] = None
    # Best-effort online flag; None means no availability data at all.
    is_available: Optional[bool] = None
    phone: Optional[str] = None


class AvailabilitySlot(BaseModel):
    id: int
    provider_id: int
    day_of_week: Optional[int] = None
    specific_date: Optional[str] = None
    start_time: str
    end_time: str
    max_bookings: int = 1
    is_active: bool = True
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def is_recurring(self) -> bool:
        return self.day_of_week is not None


class AvailabilitySlotCreate(BaseModel):
    day_of_week: Optional[int] = None
    specific_date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    max_bookings: Optional[int] = None


class AvailabilitySlotUpdate(BaseModel):
    day_of_week: Optional[int] = None
    specific_date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    max_bookings: Optional[int] = None
    is_active: Optional[bool] = None


class AvailabilityCheckResult(BaseModel):
    available: bool
    slots: list[AvailabilitySlot] = Field(default_factory=list)


class MatchBreakdown(BaseModel):
    category_match: float
    location_score: float
    quality_score: float
    availability_score: float
    response_score: float
    credits_score: float


class MatchScore(BaseModel):
    provider_id: int
    provider: ServiceProvider
    total_score: int
    breakdown: MatchBreakdown
    distance_km: Optional[float] = None
    estimated_response_time: str
    recommendation_reasons: list[str] = Field(default_factory=list)


class MatchFactor(BaseModel):
    key: str
    name: str
    weight: float


class MatchingAlgorithmInfo(BaseModel):
    version: str
    factors: list[MatchFactor]


class MatchStats(BaseModel):
    total_providers: int
    verified_providers: int
    active_providers: int
    matching_algorithm: MatchingAlgorithmInfo


class MatchRequest(BaseModel):
    category_id: int
    city: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    estimated_budget: Optional[float] = None
    is_urgent: bool = False
    preferred_date: Optional[datetime] = None
    max_results: Optional[int] = None


class MatchRequestInfo(BaseModel):
    category_id: int
    category_name: str
    city: str
    is_urgent: bool
    total_providers: int
    matching_providers: int


class FindMatchesResponse(BaseModel):
    request_info: MatchRequestInfo
    matches: list[MatchScore]


class ServiceRequest(BaseModel):
    id: int
    customer_id: str
    provider_id: Optional[int] = None
    category_id: int
    title: str
    description: str = ""
    city: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    estimated_budget: Optional[float] = None
    is_urgent: bool = False
    preferred_date: Optional[datetime] = None
    duration_minutes: int = 60
    quoted_price: Optional[float] = None
    status: RequestStatus = "pending"
    created_at: str
    updated_at: str
    quoted_at: Optional[str] = None
    accepted_at: Optional[str] = None
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    cancelled_at: Optional[str] = None


class ServiceRequestCreate(BaseModel):
    customer_id: str
    category_id: int
    title: str
    description: str = ""
    city: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    estimated_budget: Optional[float] = None
    is_urgent: bool = False
    preferred_date: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    provider_id: Optional[int] = None


class ProviderAssignRequest(BaseModel):
    customer_id: str
    provider_id: int


class QuoteSubmitRequest(BaseModel):
    provider_id: int
    price: float


class AcceptQuoteRequest(BaseModel):
    customer_id: str


class ProviderActionRequest(BaseModel):
    provider_id: int


class CancelServiceRequest(BaseModel):
    actor_role: str
    actor_id: str
