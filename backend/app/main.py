from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.core.config import settings
from app.core.logging import setup_logging
import app.models  # noqa: F401  # force model registration

from app.api.error_handlers import register_error_handlers
from app.api.v1.auth import router as auth_router
from app.api.v1.chapters import router as chapters_router
from app.api.v1.budget import router as budget_router
from app.api.v1.members import router as members_router
from app.api.v1.branding import router as branding_router
from app.api.v1.invitations import router as invitations_router
from app.api.v1.join import router as join_router
from app.api.v1.tasks import router as tasks_router
from app.api.v1.events import router as events_router
from app.api.v1.vendors import router as vendors_router
from app.api.v1.recruitment import router as recruitment_router
from app.api.v1.posts import router as posts_router
from app.api.v1.developer import router as developer_router
from app.api.v1.dues import router as dues_router
from app.api.v1.announcements import router as announcements_router


def create_application() -> FastAPI:
    setup_logging(level=settings.LOG_LEVEL, fmt=settings.LOG_FORMAT)

    app = FastAPI(title=settings.APP_NAME)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    @app.get("/")
    def root():
        return {"status": "ok", "service": "trailblaize", "environment": settings.ENVIRONMENT}

    # Routers
    app.include_router(auth_router, prefix="/api/v1")
    app.include_router(chapters_router, prefix="/api/v1")
    app.include_router(budget_router, prefix="/api/v1")
    app.include_router(members_router, prefix="/api/v1")
    app.include_router(branding_router, prefix="/api/v1")
    app.include_router(invitations_router, prefix="/api/v1")
    app.include_router(join_router, prefix="/api/v1")
    app.include_router(tasks_router, prefix="/api/v1")
    app.include_router(events_router, prefix="/api/v1")
    app.include_router(vendors_router, prefix="/api/v1")
    app.include_router(recruitment_router, prefix="/api/v1")
    app.include_router(posts_router, prefix="/api/v1")
    app.include_router(dues_router, prefix="/api/v1")
    app.include_router(announcements_router, prefix="/api/v1")
    app.include_router(developer_router, prefix="/api/v1")

    # Uploaded chapter logos
    app.mount(
        settings.MEDIA_BASE_URL,
        StaticFiles(directory=settings.MEDIA_ROOT, check_dir=False),
        name="media",
    )

    return app


app = create_application()
