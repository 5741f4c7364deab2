"""
Recommendation schemas cho Recommendation API.
"""
from typing import Any, List, Optional

from pydantic import BaseModel, Field


class RecommendedItemResponse(BaseModel):
    """
    Response schema cho recommended item.
    """
    item_id: Any = Field(..., description="Item ID")
    score: float = Field(..., description="Estimated preference")
    rank: int = Field(..., description="Rank position (1-based)")


class RecommendResponse(BaseModel):
    """
    Response schema cho recommendations.
    """
    user_id: Any = Field(..., description="User ID")
    recommendations: List[RecommendedItemResponse] = Field(..., description="List of recommended items")
    total: int = Field(..., description="Total number of recommendations")


class EstimateResponse(BaseModel):
    """
    Response schema cho estimated preference.
    """
    user_id: Any = Field(..., description="User ID")
    item_id: Any = Field(..., description="Item ID")
    value: Optional[float] = Field(None, description="Estimated preference, null nếu không estimate được")


class SimilarUsersResponse(BaseModel):
    """
    Response schema cho danh sách users tương tự.
    """
    user_id: Any = Field(..., description="User ID")
    similar_users: List[Any] = Field(..., description="User IDs, similarity giảm dần")
    total: int = Field(..., description="Total number of users")


class RefreshResponse(BaseModel):
    """
    Response schema cho refresh.
    """
    status: str = Field(..., description="Refresh status")
