import uuid

from snapgram.config import POSTS_COLLECTION_ID, USERS_COLLECTION_ID
from snapgram.db import InMemoryDocumentStore, set_db
from snapgram.realtime import RealtimeHub


def fresh_store(hub=None) -> InMemoryDocumentStore:
    store = InMemoryDocumentStore(hub=hub or RealtimeHub())
    set_db(store)
    return store


async def make_user(store, username: str, name: str | None = None) -> dict:
    return await store.create_document(USERS_COLLECTION_ID, {
        "account_id": uuid.uuid4().hex,
        "name": name or username.title(),
        "username": username,
        "email": f"{username}@snapgram.io",
        "image_url": None,
        "image_id": None,
        "bio": "",
    })


async def make_post(store, creator: str, caption: str = "Sunset over the bay", likes=None) -> dict:
    return await store.create_document(POSTS_COLLECTION_ID, {
        "creator": creator,
        "caption": caption,
        "image_url": None,
        "image_id": None,
        "location": None,
        "tags": [],
        "likes": list(likes or []),
    })
