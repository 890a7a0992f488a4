import logging
import uuid
from typing import Optional
from urllib.parse import quote

from fastapi import HTTPException, UploadFile

from snapgram.auth import create_access_token
from snapgram.cloudinary_util import delete_image, upload_image
from snapgram.config import (
    ACCOUNTS_COLLECTION_ID,
    ENDPOINT_URL,
    SESSIONS_COLLECTION_ID,
    USERS_COLLECTION_ID,
)
from snapgram.controllers import post_controller
from snapgram.db import DocumentNotFoundError, Query, get_db, hash_password, verify_password
from snapgram.models.user_model import LoginRequest, NewUser
from snapgram.saga import SagaStep, run_saga

logger = logging.getLogger(__name__)


def initials_avatar_url(name: str) -> str:
    return f"{ENDPOINT_URL}/avatars/initials?name={quote(name)}"


async def register_user(user: NewUser):
    """Create the auth account and the user profile that points at it."""
    db = get_db()

    # Check if user exists
    for field, value in (("email", user.email), ("username", user.username)):
        if await db.find_one(USERS_COLLECTION_ID, [Query.equal(field, value)]):
            raise HTTPException(status_code=409, detail="Username or email already exists")

    account_id = uuid.uuid4().hex

    async def create_account():
        return await db.create_document(
            ACCOUNTS_COLLECTION_ID,
            {"email": user.email, "name": user.name, "password": hash_password(user.password)},
            document_id=account_id,
        )

    async def delete_account(account):
        await db.delete_document(ACCOUNTS_COLLECTION_ID, account["id"])

    async def save_user():
        return await db.create_document(USERS_COLLECTION_ID, {
            "account_id": account_id,
            "name": user.name,
            "username": user.username,
            "email": user.email,
            "image_url": initials_avatar_url(user.name),
            "image_id": None,
            "bio": "",
        })

    try:
        _, saved = await run_saga([
            SagaStep("create account", create_account, delete_account),
            SagaStep("save user profile", save_user),
        ])
    except Exception as e:
        logger.error(f"⚠️ Error in register_user: {e}")
        raise HTTPException(status_code=500, detail="Failed to create user account") from e

    logger.info(f"✅ Registered user {saved['id']}")
    return saved


async def authenticate_user(login_request: LoginRequest):
    db = get_db()
    account = await db.find_one(ACCOUNTS_COLLECTION_ID, [Query.equal("email", login_request.email)])
    if not account or not verify_password(login_request.password, account["password"]):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    profile = await db.find_one(USERS_COLLECTION_ID, [Query.equal("account_id", account["id"])])
    if not profile:
        logger.error(f"⚠️ Account {account['id']} has no user profile")
        raise HTTPException(status_code=500, detail="Missing user profile")

    try:
        session = await db.create_document(
            SESSIONS_COLLECTION_ID, {"account_id": account["id"], "user_id": profile["id"]}
        )
    except Exception as e:
        logger.error(f"⚠️ Error creating session: {e}")
        raise HTTPException(status_code=500, detail="Failed to sign in") from e

    token = create_access_token({
        "sub": profile["id"],
        "username": profile.get("username"),
        "sid": session["id"],
    })
    return {
        "message": "Login successful",
        "access_token": token,
        "token_type": "bearer",
        "user_id": profile["id"],
    }


async def sign_out(current_user: dict):
    try:
        await get_db().delete_document(SESSIONS_COLLECTION_ID, current_user["session_id"])
    except DocumentNotFoundError:
        pass
    except Exception as e:
        logger.error(f"⚠️ Error in sign_out: {e}")
        raise HTTPException(status_code=500, detail="Failed to sign out") from e
    return {"message": "Signed out"}


async def get_user_by_id(user_id: str):
    try:
        return await get_db().get_document(USERS_COLLECTION_ID, user_id)
    except DocumentNotFoundError:
        raise HTTPException(status_code=404, detail="User not found")


async def get_current_user_profile(current_user: dict):
    user = await get_user_by_id(current_user["user_id"])
    saves = await post_controller.get_saved_records(user["id"])
    user["saved_post_ids"] = [s["post_id"] for s in saves]
    return user


async def get_users(limit: Optional[int] = None):
    queries = [Query.order_desc("created_at")]
    if limit:
        queries.append(Query.limit(limit))
    try:
        result = await get_db().list_documents(USERS_COLLECTION_ID, queries)
    except Exception as e:
        logger.error(f"⚠️ Error in get_users: {e}")
        raise HTTPException(status_code=500, detail="Failed to load users") from e
    return {"total": result["total"], "users": result["documents"]}


async def search_users(term: str):
    db = get_db()
    found = {}
    for field in ("username", "name"):
        result = await db.list_documents(USERS_COLLECTION_ID, [Query.search(field, term)])
        for user in result["documents"]:
            found.setdefault(user["id"], user)
    return list(found.values())


async def update_user(
    user_id: str,
    current_user: dict,
    name: Optional[str] = None,
    bio: Optional[str] = None,
    image: Optional[UploadFile] = None,
):
    if user_id != current_user["user_id"]:
        raise HTTPException(status_code=403, detail="You can only update your own profile")

    db = get_db()
    user = await get_user_by_id(user_id)

    uploaded = None
    if image:
        uploaded = await upload_image(image, folder="snapgram/profiles")

    updates = {k: v for k, v in (("name", name), ("bio", bio)) if v is not None}
    if uploaded:
        updates["image_url"] = uploaded["url"]
        updates["image_id"] = uploaded["file_id"]
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")

    try:
        updated = await db.update_document(USERS_COLLECTION_ID, user_id, updates)
    except Exception as e:
        logger.error(f"⚠️ Error in update_user: {e}")
        if uploaded:
            delete_image(uploaded["file_id"])
        raise HTTPException(status_code=500, detail="Failed to update user") from e

    if uploaded and user.get("image_id"):
        if not delete_image(user["image_id"]):
            logger.warning(f"⚠️ Could not delete old avatar {user['image_id']}")

    return updated
