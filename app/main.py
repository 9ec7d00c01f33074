from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.user_imports.router import router as user_imports_router
from app.core.config import settings
from app.core.logging import configure_logging


def create_app() -> FastAPI:
    configure_logging(settings.log_level)
    app = FastAPI(title="School Management Backend")

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # or set specific origins, e.g. ["https://yourfrontend.com", "http://localhost:3000"]
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(user_imports_router)

    return app


app = create_app()
