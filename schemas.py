# schemas.py
"""
Document Schemas for the Zoe Car Dealership storefront

Each Pydantic model describes the documents of one collection in the document
store. Collection paths are listed in ``COLLECTIONS``; user-owned collections
live under ``users/<uid>/``.
"""
from datetime import datetime
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, EmailStr, Field

COLLECTIONS = {
    "users": "users",
    "admins": "admins",
    "vehicles": "vehicles",
    "spare_parts": "spare_parts",
    "contact_messages": "contact_messages",
    "car_submissions": "car_submissions",
}


def chat_path(uid: str) -> str:
    return f"users/{uid}/chat_messages"


# Users
class UserProfile(BaseModel):
    first_name: str = Field("", description="Given name")
    last_name: str = Field("", description="Family name")
    email: EmailStr
    phone: Optional[str] = None
    role: Literal["user", "admin"] = Field("user", description="Admin role unlocks the back office")
    created_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


# Vehicles
class FuelEconomy(BaseModel):
    hwy: Optional[str] = None
    city: Optional[str] = None


class VehicleBase(BaseModel):
    name: str = ""
    make: str = ""
    model: str = ""
    year: int = 0
    trim: Optional[str] = None
    body: Optional[str] = None
    mileage: int = 0
    engine: Optional[str] = None
    transmission: Optional[str] = None
    drive_type: Optional[str] = None
    fuel_type: Optional[str] = None
    fuel_economy: Optional[FuelEconomy] = None
    exterior: Optional[str] = None
    interior: Optional[str] = None
    doors: Optional[int] = None
    passengers: Optional[int] = None
    vin: str = ""
    stock_number: Optional[str] = None
    price: float = Field(0, ge=0)
    condition: str = "used"
    sold: bool = False
    is_trade_in: bool = Field(False, description="Trade-in pool, disjoint from general inventory")
    images: List[str] = []
    video: Optional[str] = None
    description: str = ""
    features: List[str] = []


class Vehicle(VehicleBase):
    id: str
    created_at: Optional[datetime] = None


# Spare parts
class SparePartBase(BaseModel):
    name: str
    brand: str = ""
    category: str = ""
    part_number: str = ""
    condition: str = "new"
    warranty: str = ""
    price: float = Field(0, ge=0)
    stock: int = Field(0, ge=0, description="Zero means unavailable for inquiry")
    compatibility: List[str] = []
    description: str = ""
    images: List[str] = []


class SparePart(SparePartBase):
    id: str
    created_at: Optional[datetime] = None

    @property
    def available(self) -> bool:
        return self.stock > 0


# Saved / liked links (users/<uid>/saved_vehicles, saved_parts, liked_vehicles)
class SavedLink(BaseModel):
    entity_ref: str = Field(..., description="Collection path and id of the bookmarked entity")
    saved_at: Optional[datetime] = None


# Car submissions
class CarSubmission(BaseModel):
    id: Optional[str] = None
    user_id: str
    name: str
    email: EmailStr
    phone: str = ""
    make: str
    model: str
    year: int
    mileage: int
    condition: str
    vin: str = ""
    description: str = ""
    price: float = 0
    body: str = ""
    transmission: str = "Manual"
    engine: str = "Unknown"
    exterior: str = "Unknown"
    interior: str = "Unknown"
    images: List[str]
    source_page: Literal["trade-in", "send-us-your-car"]
    selected_car_id: str = ""
    submission_type: Literal["regular", "trade-in"] = "regular"
    status: Literal["pending", "reviewed", "rejected"] = "pending"
    read: bool = False
    created_at: Optional[datetime] = None


# Chat and contact messages
class ItemContext(BaseModel):
    vehicle_id: Optional[str] = None
    vehicle_name: Optional[str] = None
    vehicle_price: Optional[float] = None
    vehicle_image: Optional[str] = None
    part_id: Optional[str] = None
    part_name: Optional[str] = None
    part_price: Optional[float] = None
    part_image: Optional[str] = None
    part_number: Optional[str] = None
    part_brand: Optional[str] = None
    part_condition: Optional[str] = None


class ChatMessage(ItemContext):
    id: Optional[str] = None
    text: str
    user_id: str = Field(..., description="Author; 'admin' for staff replies")
    user_name: str = "User"
    read: bool = False
    created_at: Optional[datetime] = None


class ContactMessage(BaseModel):
    id: Optional[str] = None
    name: str
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    message: str
    user_id: str
    read: bool = False
    created_at: Optional[datetime] = None


# Admin inbox entries: one variant per source collection, tagged by ``type``
class InboxEntryBase(BaseModel):
    id: str
    name: str
    email: str = ""
    message: str = ""
    date: datetime
    read: bool = False
    user_id: str = Field("", description="Owner of the thread or author of the form")


class InboxChat(InboxEntryBase):
    type: Literal["chat"] = "chat"


class InboxContact(InboxEntryBase):
    type: Literal["contact"] = "contact"


class InboxCarSubmission(InboxEntryBase):
    type: Literal["car"] = "car"
    car_make: str = ""
    car_model: str = ""
    car_year: int = 0
    mileage: int = 0
    body: str = ""
    transmission: str = ""
    engine: str = ""
    exterior: str = ""
    interior: str = ""
    description: str = ""
    images: List[str] = []
    submission_type: Literal["regular", "trade-in"] = "regular"


InboxEntry = Annotated[
    Union[InboxChat, InboxContact, InboxCarSubmission],
    Field(discriminator="type"),
]


class Redirect(BaseModel):
    """Navigation request handed back to the client instead of performing it."""
    redirect: str
    state: Dict[str, Union[str, float, int, None]] = {}
