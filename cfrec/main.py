import logging
import time

from fastapi import FastAPI, Request

from cfrec.config import settings
from cfrec.web.routes import recommend

logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Collaborative Filtering Recommender API",
    description="RESTful API cho collaborative-filtering recommender (user-based, slope one)",
    version="1.0.0"
)


@app.middleware("http")
async def timing_middleware(request: Request, call_next):
    """Log slow requests (recommendation trên dataset lớn có thể chậm)."""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time

    if process_time > 5:
        logger.warning(
            f"Slow request: {request.method} {request.url.path} "
            f"took {process_time:.2f}s"
        )

    return response


# Include routers
app.include_router(recommend.router)


@app.on_event("startup")
async def startup_event():
    """Hiển thị config khi app khởi động."""
    logger.info(
        f"Recommender API started: recommender={settings.recommender}, "
        f"similarity={settings.similarity}, ratings={settings.ratings_path}"
    )
    logger.info(f"API Docs: http://{settings.host}:{settings.port}/docs")


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "Collaborative Filtering Recommender API",
        "version": "1.0.0",
        "docs": "/docs",
        "redoc": "/redoc"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "service": "recommender-api"}
