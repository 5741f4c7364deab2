"""
Recommendation API routes
========================

API endpoints để lấy recommendations, estimate preference, similar users và refresh.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from cfrec.recommender.exceptions import (
    NoSuchItemError,
    NoSuchUserError,
    UnsupportedOperationError,
)
from cfrec.web.schemas.recommend import (
    EstimateResponse,
    RecommendResponse,
    RefreshResponse,
    SimilarUsersResponse,
)
from cfrec.web.services.recommendation_service import (
    RecommendationService,
    get_recommendation_service,
    parse_id,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/recommend", tags=["recommendations"])


def _to_http_exception(e: Exception, action: str) -> HTTPException:
    """Map lỗi của engine sang HTTP status code."""
    if isinstance(e, (NoSuchUserError, NoSuchItemError)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, UnsupportedOperationError):
        return HTTPException(status_code=405, detail=str(e))
    if isinstance(e, ValueError):
        return HTTPException(status_code=400, detail=str(e))
    logger.error(f"Error {action}: {e}", exc_info=True)
    return HTTPException(status_code=500, detail=f"Error {action}: {str(e)}")


@router.post(
    "/refresh",
    response_model=RefreshResponse,
    summary="Refresh recommender",
    description="Rebuild các cấu trúc dẫn xuất (diff storage, cached counts) từ data model."
)
def refresh_recommender(
    service: RecommendationService = Depends(get_recommendation_service)
):
    try:
        service.refresh()
        return RefreshResponse(status="ok")
    except Exception as e:
        raise _to_http_exception(e, "refreshing recommender")


@router.get(
    "/{user_id}",
    response_model=RecommendResponse,
    summary="Get recommendations for user"
)
def get_recommendations(
    user_id: str,
    top_n: Optional[int] = Query(None, description="Number of recommendations"),
    service: RecommendationService = Depends(get_recommendation_service)
):
    """
    Lấy recommendations cho user.

    Args:
        user_id: User ID
        top_n: Số lượng recommendations (mặc định theo config)
        service: RecommendationService

    Returns:
        RecommendResponse
    """
    parsed_user_id = parse_id(user_id)
    try:
        recommendations = service.recommend(parsed_user_id, top_n)
    except Exception as e:
        raise _to_http_exception(e, "generating recommendations")

    logger.info(f"Generated {len(recommendations)} recommendations for user {parsed_user_id!r}")
    return RecommendResponse(
        user_id=parsed_user_id,
        recommendations=recommendations,
        total=len(recommendations)
    )


@router.get(
    "/{user_id}/estimate/{item_id}",
    response_model=EstimateResponse,
    summary="Estimate preference of user for item"
)
def estimate_preference(
    user_id: str,
    item_id: str,
    service: RecommendationService = Depends(get_recommendation_service)
):
    parsed_user_id = parse_id(user_id)
    parsed_item_id = parse_id(item_id)
    try:
        value = service.estimate(parsed_user_id, parsed_item_id)
    except Exception as e:
        raise _to_http_exception(e, "estimating preference")
    return EstimateResponse(user_id=parsed_user_id, item_id=parsed_item_id, value=value)


@router.get(
    "/{user_id}/similar-users",
    response_model=SimilarUsersResponse,
    summary="Get most similar users"
)
def get_similar_users(
    user_id: str,
    top_n: Optional[int] = Query(None, description="Number of users"),
    service: RecommendationService = Depends(get_recommendation_service)
):
    parsed_user_id = parse_id(user_id)
    try:
        similar_users = service.similar_users(parsed_user_id, top_n)
    except Exception as e:
        raise _to_http_exception(e, "finding similar users")
    return SimilarUsersResponse(
        user_id=parsed_user_id,
        similar_users=similar_users,
        total=len(similar_users)
    )
