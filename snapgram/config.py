import os
from dotenv import load_dotenv

# Load .env file
load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# Project / database
ENDPOINT_URL = os.getenv("SNAPGRAM_ENDPOINT_URL", "http://localhost:8000")
DATABASE_ID = os.getenv("SNAPGRAM_DATABASE_ID", "main")

# Collection ids
USERS_COLLECTION_ID = os.getenv("SNAPGRAM_USERS_COLLECTION_ID", "users")
POSTS_COLLECTION_ID = os.getenv("SNAPGRAM_POSTS_COLLECTION_ID", "posts")
SAVES_COLLECTION_ID = os.getenv("SNAPGRAM_SAVES_COLLECTION_ID", "saves")
FOLLOWS_COLLECTION_ID = os.getenv("SNAPGRAM_FOLLOWS_COLLECTION_ID", "follows")
NOTIFICATIONS_COLLECTION_ID = os.getenv("SNAPGRAM_NOTIFICATIONS_COLLECTION_ID", "notifications")
COMMENTS_COLLECTION_ID = os.getenv("SNAPGRAM_COMMENTS_COLLECTION_ID", "comments")
SHARES_COLLECTION_ID = os.getenv("SNAPGRAM_SHARES_COLLECTION_ID", "shares")
ACCOUNTS_COLLECTION_ID = os.getenv("SNAPGRAM_ACCOUNTS_COLLECTION_ID", "accounts")
SESSIONS_COLLECTION_ID = os.getenv("SNAPGRAM_SESSIONS_COLLECTION_ID", "sessions")

# Neo4j
NEO4J_URI = os.getenv("NEO4J_URI")
NEO4J_USER = os.getenv("NEO4J_USER")
NEO4J_PASSWORD = os.getenv("NEO4J_PASSWORD")
NEO4J_DATABASE = os.getenv("NEO4J_DATABASE", "neo4j")

USE_IN_MEMORY_BACKENDS = _env_bool("USE_IN_MEMORY_BACKENDS")

# Realtime reconnect policy (seconds)
REALTIME_MAX_RECONNECT_ATTEMPTS = int(os.getenv("REALTIME_MAX_RECONNECT_ATTEMPTS", "5"))
REALTIME_RECONNECT_BASE_DELAY = float(os.getenv("REALTIME_RECONNECT_BASE_DELAY", "1.0"))
REALTIME_RECONNECT_MAX_DELAY = float(os.getenv("REALTIME_RECONNECT_MAX_DELAY", "5.0"))
REALTIME_RECONNECT_JITTER = float(os.getenv("REALTIME_RECONNECT_JITTER", "0.0"))

NOTIFICATION_FANOUT_ATTEMPTS = int(os.getenv("NOTIFICATION_FANOUT_ATTEMPTS", "3"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def neo4j_configured() -> bool:
    return bool(NEO4J_URI and NEO4J_USER and NEO4J_PASSWORD)

