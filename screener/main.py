"""
FastAPI application entry point
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from screener.app.api.v1 import analysis
from screener.app.core.config import settings
from screener.app.core.logging_config import setup_logging
from screener.app.db.base import Base
from screener.app.db.session import engine

# Import models so they register with Base.metadata
import screener.app.models  # noqa: F401

logger = setup_logging()

# Create database tables (production schema is managed by alembic)
try:
    Base.metadata.create_all(bind=engine)
except Exception as e:
    logger.error("Database error: %s", e)

# Initialize FastAPI app
app = FastAPI(
    title=f"{settings.app_name} API",
    description="Resume analysis against role profiles",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(analysis.router, prefix="/api", tags=["analysis"])


@app.get("/")
def read_root():
    """Root endpoint"""
    return {"message": f"{settings.app_name} API", "version": settings.app_version}


@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
