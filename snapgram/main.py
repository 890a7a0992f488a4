import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi

from snapgram.config import LOG_LEVEL
from snapgram.routes import avatar_routes, comment_routes, follow_routes, notification_routes, realtime_routes, share_routes
from snapgram.routes import user_routes, post_routes
from snapgram.db import get_db
from snapgram.auth import get_current_user

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    db = get_db()
    try:
        await db.prepare()
    except Exception as e:
        # Keep serving; store calls will fail loudly until the backend is reachable.
        logger.error(f"❌ Failed to prepare document store: {e}")
    yield
    await db.close()


# =========================================================
# ✅ APP SETUP
# =========================================================
app = FastAPI(
    title="Snapgram API",
    version="1.0.0",
    description="Posts, follows, likes, comments and notifications over a document store, using HTTP Bearer JWT authentication.",
    swagger_ui_parameters={"persistAuthorization": True},  # keep token after refresh
    lifespan=lifespan,
)

# =========================================================
# ✅ ENABLE CORS
# =========================================================
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:5174",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# =========================================================
# ✅ ROUTE REGISTRATION
# =========================================================
app.include_router(user_routes.router, prefix="/users", tags=["Users"])
app.include_router(post_routes.router, prefix="/posts", tags=["Posts"])
app.include_router(follow_routes.router, prefix="/follows", tags=["Follows"])
app.include_router(comment_routes.router, prefix="/comments", tags=["Comments"])
app.include_router(share_routes.router, prefix="/shares", tags=["Shares"])
app.include_router(notification_routes.router, prefix="/notifications", tags=["Notifications"])
app.include_router(realtime_routes.router, prefix="/realtime", tags=["Realtime"])
app.include_router(avatar_routes.router, prefix="/avatars", tags=["Avatars"])


# =========================================================
# ✅ PROTECTED ROOT ENDPOINT
# =========================================================
@app.get("/")
async def root(current_user: dict = Depends(get_current_user)):
    """
    Protected welcome route. Requires valid Bearer token.
    """
    return {
        "message": f"Welcome {current_user['username']} to Snapgram!",
        "user_id": current_user["user_id"],
    }


# =========================================================
# ✅ CUSTOM OPENAPI (for HTTP Bearer Auth)
# =========================================================
def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )

    # Add Bearer auth scheme
    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        "HTTPBearer": {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
        }
    }

    # Apply Bearer auth to all endpoints by default
    for path in openapi_schema["paths"].values():
        for method in path.values():
            method.setdefault("security", [{"HTTPBearer": []}])

    app.openapi_schema = openapi_schema
    return app.openapi_schema


# Attach custom OpenAPI schema
app.openapi = custom_openapi
