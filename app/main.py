from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.matching.router import router as matching_router
from app.api.v1.school_groups.router import router as school_groups_router
from app.api.v1.schools.router import router as schools_router
from app.core.config import settings
from app.core.logging_config import configure_logging


def create_app() -> FastAPI:
    configure_logging(settings.log_level)
    app = FastAPI(title="Pen Pal Exchange Backend")

    # CORS: allow the admin dashboard to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(schools_router)
    app.include_router(school_groups_router)
    app.include_router(matching_router)

    return app


app = create_app()
