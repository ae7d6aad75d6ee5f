from fastapi import FastAPI
from contextlib import AsyncExitStack

from nexus.connections import mongo_lifespan
from nexus.api.error_handling import register_exception_handlers
from nexus.api.auth import router as auth_router
from nexus.api.mfa import router as mfa_router
from nexus.api.projects import router as projects_router
from nexus.api.users import router as users_router
from nexus.utils.config import settings


async def combined_lifespan(app: FastAPI):
    async with AsyncExitStack() as stack:
        await stack.enter_async_context(mongo_lifespan(app))

        yield


app = FastAPI(title="PixelForge Nexus", version="0.1.0", lifespan=combined_lifespan)
register_exception_handlers(app)


app.include_router(auth_router, prefix="/api/auth")
app.include_router(mfa_router, prefix="/api/auth/mfa")
app.include_router(projects_router, prefix="/api/projects")
app.include_router(users_router, prefix="/api/users")


@app.get("/api/health")
def health() -> dict:
    return {"status": "ok", "environment": settings.environment}
