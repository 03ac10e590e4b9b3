from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
import logging

from app.config import settings
from app.db import db
from app.utils.uploads import ensure_upload_dir

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Patient Records API",
    description="API for managing patient records, relatives contacts and pictures",
    version="1.0.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    redirect_slashes=True
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "HEAD", "PATCH"],
    allow_headers=[
        "Accept",
        "Accept-Language",
        "Content-Language",
        "Content-Type",
        "Authorization",
        "X-Requested-With",
        "Origin",
        "Cache-Control",
        "Range"
    ],
    expose_headers=["*"]
)

# Import and include routers AFTER app creation and CORS setup
from app.routes.patients import router as patients_router

app.include_router(patients_router, prefix="/api/patients")

# Stored pictures are referenced as "<UPLOAD_DIR>/<filename>"
app.mount(f"/{settings.UPLOAD_DIR.strip('/')}", StaticFiles(directory=ensure_upload_dir()), name="uploads")

@app.on_event("startup")
async def startup():
    try:
        await db.connect()
        logger.info(f"Connected to MongoDB database: {settings.MONGODB_NAME}")
    except Exception as e:
        logger.error(f"Startup failed: {str(e)}")
        raise

@app.on_event("shutdown")
async def shutdown():
    try:
        if db.client:  # Only try to close if client exists
            await db.close()
            logger.info("Database connection closed.")
    except Exception as e:
        logger.error(f"Error closing database connection: {str(e)}")

@app.get("/")
async def root():
    return {"message": "Patient Records API"}

@app.get("/api/health")
async def health():
    return {"status": "OK", "database": settings.MONGODB_NAME}

@app.on_event("startup")
async def print_routes():
    logger.info("Registered routes:")
    for route in app.routes:
        if hasattr(route, 'path') and hasattr(route, 'methods'):
            methods = getattr(route, 'methods', set())
            logger.info(f"  {', '.join(methods)} {route.path}")

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.PORT,
        reload=True,
        log_level="info"
    )
