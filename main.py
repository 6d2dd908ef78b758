import logging
import os
import time
from typing import Any, Dict, Literal, Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pymongo.errors import PyMongoError

import database
from database import create_document, delete_document, get_documents, update_document
from schemas import Category, ItemStatus

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="Campus Lost & Found API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


@app.exception_handler(PyMongoError)
async def database_error_handler(request: Request, exc: PyMongoError):
    logger.error("Critical API Error [%s %s]: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Database connection failed"})


@app.get("/")
def read_root():
    return {"message": "Campus Lost & Found Backend Running"}


@app.get("/test")
def test_database():
    """Database diagnostics: configuration, reachability and collections."""
    report = {
        "configured": database.db is not None,
        "config_error": database.config_error,
        "connected": False,
        "collections": [],
        "error": None,
    }
    if database.db is not None:
        try:
            report["collections"] = sorted(database.db.list_collection_names())
            report["connected"] = True
        except PyMongoError as e:
            report["error"] = str(e)[:80]
    return report


# Utilities

def now_ms() -> int:
    return int(time.time() * 1000)


def require_db():
    if database.db is None:
        raise HTTPException(status_code=500, detail=f"Database not configured: {database.config_error}")
    return database.db


def oid(id_str: str, label: str) -> ObjectId:
    # Malformed ids cannot name a stored document
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=404, detail=f"{label} not found")


def serialize(doc: Dict[str, Any]) -> Dict[str, Any]:
    d = dict(doc)
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    return d


def changes(update: BaseModel, exclude=None) -> Dict[str, Any]:
    # Only fields the client sent; null never overwrites a stored value
    return update.model_dump(by_alias=True, exclude_unset=True, exclude_none=True, mode="json", exclude=exclude)


# Models for requests

class CamelRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserUpdate(CamelRequest):
    """Editable profile fields; identity fields are not accepted."""
    name: Optional[str] = None
    department: Optional[str] = None
    faculty: Optional[str] = None
    level: Optional[str] = None
    student_id: Optional[str] = None
    phone_number: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    preferred_meeting_spot: Optional[str] = None
    social_handle: Optional[str] = None


class AuthRequest(CamelRequest):
    action: Literal["signup", "login", "update"]
    email: Optional[str] = None
    name: Optional[str] = None
    user_id: Optional[str] = None
    updates: UserUpdate = Field(default_factory=UserUpdate)


class CreateItemRequest(CamelRequest):
    title: str
    description: str
    category: Category = Category.OTHERS
    location: str = "Other"
    date: Optional[str] = None
    status: ItemStatus = ItemStatus.LOST
    image_url: Optional[str] = None
    poster_id: str
    poster_name: str


class ItemUpdate(CamelRequest):
    item_id: str
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[Category] = None
    location: Optional[str] = None
    date: Optional[str] = None
    status: Optional[ItemStatus] = None
    image_url: Optional[str] = None
    poster_id: Optional[str] = None
    poster_name: Optional[str] = None
    is_verified: Optional[bool] = None


class VerifyItemRequest(CamelRequest):
    item_id: str
    is_verified: bool = True


class SendMessageRequest(CamelRequest):
    sender_id: str
    receiver_id: str
    item_id: str
    content: str = ""
    image: Optional[str] = None


# A. Accounts

@app.post("/api/auth")
def auth(req: AuthRequest):
    require_db()

    if req.action == "update":
        if not req.user_id:
            raise HTTPException(status_code=400, detail="User ID is required")
        updates = changes(req.updates)
        user = update_document("users", oid(req.user_id, "User"), updates)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        return serialize(user)

    email = (req.email or "").strip().lower()
    if not email:
        raise HTTPException(status_code=400, detail="Email is required")

    existing = get_documents("users", {"email": email}, limit=1)

    if req.action == "login":
        if not existing:
            raise HTTPException(status_code=404, detail="Account not found. Please sign up first.")
        return serialize(existing[0])

    name = (req.name or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="Full name is required for registration.")
    # Signing up twice hands back the first account
    if existing:
        return serialize(existing[0])

    user_doc = {"name": name, "email": email, "createdAt": now_ms()}
    user_doc.update(changes(req.updates, exclude={"name"}))
    user_id = create_document("users", user_doc)
    logger.info("Registered user %s", user_id)
    return {**user_doc, "id": user_id}


@app.get("/api/users")
def list_users():
    require_db()
    return [serialize(u) for u in get_documents("users", sort=[("createdAt", -1)])]


# B. Items

@app.get("/api/items")
def list_items(include_unverified: bool = Query(False, alias="all")):
    require_db()
    filt = {} if include_unverified else {"isVerified": True}
    return [serialize(d) for d in get_documents("items", filt, sort=[("createdAt", -1)])]


@app.post("/api/items")
def create_item(req: CreateItemRequest):
    require_db()
    if not req.title.strip() or not req.description.strip():
        raise HTTPException(status_code=400, detail="Title and description are required")
    doc = req.model_dump(by_alias=True, mode="json")
    doc["createdAt"] = now_ms()
    doc["isVerified"] = False
    item_id = create_document("items", doc)
    return {**doc, "id": item_id}


@app.put("/api/items")
def update_item(req: ItemUpdate):
    require_db()
    if not req.item_id:
        raise HTTPException(status_code=400, detail="itemId is required")
    item = update_document("items", oid(req.item_id, "Item"), changes(req, exclude={"item_id"}))
    if not item:
        raise HTTPException(status_code=404, detail="Item not found")
    return serialize(item)


@app.patch("/api/items")
def verify_item(req: VerifyItemRequest):
    require_db()
    item = update_document("items", oid(req.item_id, "Item"), {"isVerified": req.is_verified})
    if not item:
        raise HTTPException(status_code=404, detail="Item not found")
    return serialize(item)


@app.delete("/api/items")
def delete_item(itemId: str):
    require_db()
    if not delete_document("items", oid(itemId, "Item")):
        raise HTTPException(status_code=404, detail="Item not found")
    return {"success": True}


# C. Messaging

@app.get("/api/messages")
def list_messages(userId: Optional[str] = None):
    require_db()
    if not userId:
        raise HTTPException(status_code=400, detail="User ID is required")
    msgs = get_documents(
        "messages",
        {"$or": [{"senderId": userId}, {"receiverId": userId}]},
        sort=[("timestamp", 1)],
    )
    return [serialize(m) for m in msgs]


@app.post("/api/messages")
def send_message(req: SendMessageRequest):
    require_db()
    if not req.content.strip() and not req.image:
        raise HTTPException(status_code=400, detail="Message content or image is required")
    doc = req.model_dump(by_alias=True)
    doc["timestamp"] = now_ms()
    msg_id = create_document("messages", doc)
    return {**doc, "id": msg_id}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
