from datetime import datetime, timezone
from typing import Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from lea_backend import __version__
from lea_backend.config.settings import Settings, validate_config
from lea_backend.routers import router as api_router
from lea_backend.services import AppServices, build_services
from lea_backend.utils.logger import logger


def create_app(settings: Optional[Settings] = None, services: Optional[AppServices] = None) -> FastAPI:
    """Build the application. Tests pass their own settings and fake services."""
    if services is not None:
        settings = services.settings
    settings = settings or Settings.from_env()
    services = services or build_services(settings)

    app = FastAPI(title="Lea Backend", version=__version__)
    app.state.services = services

    allowed_origins = list(dict.fromkeys(
        origin.rstrip("/")
        for origin in (settings.frontend_url, "http://localhost:3000", "http://localhost:3001")
        if origin
    ))
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    logger.info("CORS allowed origins: %s", allowed_origins)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        message = exc.detail
        if exc.status_code == 404 and message == "Not Found":
            message = "Not found"
        return JSONResponse(status_code=exc.status_code, content={"error": message}, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "Validation failed", "details": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.on_event("shutdown")
    def shutdown_event():
        logger.info("Shutting down Lea Backend...")
        app.state.services.close()

    app.include_router(api_router)
    return app


app = create_app()


def main():
    load_dotenv()
    settings = Settings.from_env()
    validate_config(settings)

    logger.info("Lea Backend starting on port %d (%s)", settings.port, settings.node_env)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
