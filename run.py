"""
Script để chạy FastAPI application.
"""
import logging

import uvicorn

from cfrec.config import settings

if __name__ == "__main__":
    logging.basicConfig(
        level=settings.log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logger = logging.getLogger(__name__)

    settings.validate()

    # Chỉ dùng reload trong development
    if settings.is_development:
        logger.info("Starting Collaborative Filtering Recommender (Development)...")
    else:
        logger.info("Starting Collaborative Filtering Recommender API (Production)...")

    uvicorn.run(
        "cfrec.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level=settings.log_level.lower()
    )
