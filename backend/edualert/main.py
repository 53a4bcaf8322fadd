from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog

from edualert.core.config import settings
from edualert.core.logging import setup_logging
from edualert.core.exceptions import (
    EduAlertError,
    edualert_exception_handler,
    global_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)

setup_logging()
logger = structlog.get_logger()

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifecycle manager for the application.
    """
    logger.info("startup", project=settings.PROJECT_NAME, environment=settings.ENVIRONMENT)
    yield
    logger.info("shutdown")

app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    description="Teacher absence reporting for the Ministry of Education",
    lifespan=lifespan,
    docs_url=f"{settings.API_PREFIX}/docs",
    openapi_url=f"{settings.API_PREFIX}/openapi.json",
)

# Session cookies need credentialed CORS, so origins are explicit
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Exception Handlers
app.add_exception_handler(EduAlertError, edualert_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)

# Health Check
@app.get("/health", tags=["system"])
async def health_check():
    """
    Public health check endpoint for load balancers.
    """
    return {"status": "ok", "environment": settings.ENVIRONMENT}


from edualert.api.routes import auth, reports, dashboard, officers, reference, track, ai

app.include_router(auth.router, prefix=f"{settings.API_PREFIX}/auth", tags=["auth"])
app.include_router(reports.router, prefix=f"{settings.API_PREFIX}/reports", tags=["reports"])
app.include_router(dashboard.router, prefix=f"{settings.API_PREFIX}/dashboard", tags=["dashboard"])
app.include_router(officers.router, prefix=f"{settings.API_PREFIX}/officers", tags=["officers"])
app.include_router(reference.router, prefix=settings.API_PREFIX, tags=["reference"])
app.include_router(track.router, prefix=f"{settings.API_PREFIX}/track", tags=["track"])
app.include_router(ai.router, prefix=f"{settings.API_PREFIX}/ai", tags=["ai"])

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("edualert.main:app", host="0.0.0.0", port=8000, reload=True)
