from fastapi import APIRouter
from chatsync.api.v1 import health, auth, sessions, messages, admin
from chatsync.core.config import settings

api_router = APIRouter(prefix=settings.API_V1_PREFIX)

api_router.include_router(health.router, tags=['health'])
api_router.include_router(auth.router)
api_router.include_router(sessions.router)
api_router.include_router(messages.router)
api_router.include_router(admin.router)
