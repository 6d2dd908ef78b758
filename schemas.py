"""
Database Schemas for Campus Lost & Found

Each Pydantic model corresponds to a MongoDB collection:

- User -> users
- Item -> items
- Message -> messages

Documents are stored and sent over the wire with camelCase keys
(``posterId``, ``isVerified``...). The models expose snake_case attributes
and accept either spelling.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Category(str, Enum):
    ELECTRONICS = "Electronics"
    DOCUMENTS = "Documents"
    CLOTHING = "Clothing"
    WALLETS = "Wallets/Bags"
    OTHERS = "Others"


class ItemStatus(str, Enum):
    LOST = "LOST"
    FOUND = "FOUND"
    RECLAIMED = "RECLAIMED"


CAMPUS_LOCATIONS = [
    "Main Library",
    "Science Faculty",
    "Engineering Block",
    "Student Cafeteria",
    "Main Gate",
    "Sports Complex",
    "Business School",
    "Law School",
    "Medical Campus",
    "Student Dormitory",
    "Other",
]

# Reserved participant id for the centralized admin desk inbox.
ADMIN_ID = "admin_desk"

USER_IDENTITY_FIELDS = ("id", "_id", "email", "createdAt", "created_at")
ITEM_PROTECTED_FIELDS = ("id", "_id", "createdAt", "created_at")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class User(CamelModel):
    id: str = Field(..., description="User id")
    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Lowercase email, unique")
    department: Optional[str] = None
    faculty: Optional[str] = None
    level: Optional[str] = None
    student_id: Optional[str] = None
    phone_number: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    preferred_meeting_spot: Optional[str] = None
    social_handle: Optional[str] = None
    created_at: Optional[int] = Field(None, description="Epoch millis")


class Item(CamelModel):
    id: str = Field(..., description="Item id")
    title: str
    description: str
    category: Category = Category.OTHERS
    location: str = Field("Other", description="One of CAMPUS_LOCATIONS")
    date: Optional[str] = Field(None, description="When it was lost/found")
    status: ItemStatus = ItemStatus.LOST
    image_url: Optional[str] = Field(None, description="Data URL or remote URL")
    poster_id: str
    poster_name: str = Field(..., description="Snapshot of the poster's name at posting time")
    created_at: int = Field(..., description="Epoch millis")
    is_verified: bool = Field(False, description="Set by an admin to publish")


class Message(CamelModel):
    id: str
    sender_id: str
    receiver_id: str
    item_id: str
    content: str = ""
    image: Optional[str] = Field(None, description="Optional image payload")
    timestamp: int = Field(..., description="Epoch millis")


# Derived view model, never stored
class Conversation(CamelModel):
    item_id: str
    other_user_id: str
    other_user_name: str
    item_title: str
    last_message: str
    last_timestamp: int
    messages: List[Message] = Field(default_factory=list)
