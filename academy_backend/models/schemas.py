"""
Pydantic models for API request/response validation.

Request bodies accept both snake_case and the camelCase names used by the
web client (ageGroup, dateTime, ...).
"""

from datetime import datetime
from typing import Optional, List, Literal
from pydantic import BaseModel, Field, ConfigDict, model_validator


class SignupRequest(BaseModel):
    """Account registration."""

    model_config = ConfigDict(populate_by_name=True)
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    password: str = Field(min_length=6)
    phone: Optional[str] = None
    role: Literal["user", "academy"] = "user"
    academy_id: Optional[int] = Field(default=None, alias="academyId")


class LoginRequest(BaseModel):
    """Email/password login."""

    email: str
    password: str


class AuthResponse(BaseModel):
    """Login/signup response with the issued token."""

    user: dict
    token: str


class LocationGeo(BaseModel):
    lat: float
    lng: float


class CreateMatchRequest(BaseModel):
    """Request to create a match (academy accounts only)."""

    model_config = ConfigDict(populate_by_name=True)
    age_group: str = Field(alias="ageGroup", min_length=1)
    date_time: datetime = Field(alias="dateTime")
    home_away: Literal["home", "away"] = Field(alias="homeAway")
    location_description: Optional[str] = Field(default=None, alias="locationDescription")
    location_geo: Optional[LocationGeo] = Field(default=None, alias="locationGeo")
    phone: Optional[str] = None
    duration: Optional[str] = None
    description: Optional[str] = None


class UpdateMatchStatusRequest(BaseModel):
    """Board drag-and-drop status change."""

    status: str


class AcademySummary(BaseModel):
    id: int
    name: str
    name_ar: Optional[str] = None
    phone: Optional[str] = None
    logo: Optional[str] = None


class MatchResponse(BaseModel):
    """Match with populated academy display fields."""

    id: int
    academy: Optional[AcademySummary] = None
    opponent: Optional[AcademySummary] = None
    creator_id: int
    age_group: str
    date_time: Optional[str] = None
    home_away: str
    location_description: Optional[str] = None
    location_geo: Optional[LocationGeo] = None
    phone: Optional[str] = None
    duration: Optional[str] = None
    description: Optional[str] = None
    status: str
    finished_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class DeleteResponse(BaseModel):
    success: bool
    message: str


class CreatePlayerRequest(BaseModel):
    """A user's request to join an academy."""

    model_config = ConfigDict(populate_by_name=True)
    message: Optional[str] = Field(default=None, max_length=2000)
    age: Optional[int] = Field(default=None, ge=0, le=120)
    position: Optional[str] = None
    user_name: Optional[str] = Field(default=None, alias="userName")
    user_email: Optional[str] = Field(default=None, alias="userEmail")


class UpdatePlayerRequestStatus(BaseModel):
    """Approve or reject a join request."""

    status: Literal["approved", "rejected"]


class PlayerRequestResponse(BaseModel):
    id: int
    user_id: int
    academy_id: int
    academy: Optional[AcademySummary] = None
    user_name: str
    user_email: str
    academy_name: str
    status: str
    message: Optional[str] = None
    age: Optional[int] = None
    position: Optional[str] = None
    responded_at: Optional[str] = None
    expire_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class PlayerRequestPage(BaseModel):
    items: List[PlayerRequestResponse]
    page: int
    pages: int
    total: int


class CreateAcademyRequest(BaseModel):
    """Admin: create an academy."""

    model_config = ConfigDict(populate_by_name=True)
    name: str = Field(min_length=1)
    name_ar: Optional[str] = Field(default=None, alias="nameAr")
    phone: Optional[str] = None
    logo: Optional[str] = None
    location_description: Optional[str] = Field(default=None, alias="locationDescription")
    location_geo: Optional[LocationGeo] = Field(default=None, alias="locationGeo")
    verified: bool = False


class CreateAcademyAccountRequest(BaseModel):
    """Admin: create a login linked to an academy."""

    model_config = ConfigDict(populate_by_name=True)
    academy_id: int = Field(alias="academyId")
    email: str = Field(min_length=3)
    password: str = Field(min_length=6)
    name: Optional[str] = None
    phone: Optional[str] = None

    @model_validator(mode="after")
    def normalize_email(self):
        self.email = self.email.strip().lower()
        return self
