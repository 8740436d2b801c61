import logging

from fastapi import FastAPI

from reviewhooks.config import settings
from reviewhooks.routes.health import router as health_router
from reviewhooks.routes.webhooks import router as webhooks_router

def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="review-hooks", version="0.1.0")
    app.include_router(health_router)
    app.include_router(webhooks_router)
    return app

app = create_app()
