"""Stored recommendation endpoints (read-only)."""

from fastapi import APIRouter, HTTPException

from api.models import RecommendationListResponse, RecommendationResponse
from api.stores import get_store

router = APIRouter(tags=["recommendations"])


@router.get("/recommendations", response_model=RecommendationListResponse, summary="All stored recommendations")
def list_recommendations():
    recs = [r.to_dict() for r in get_store().recommendations()]
    return {"recommendations": recs, "total": len(recs)}


@router.get("/recommendations/{vault}", response_model=RecommendationResponse, summary="Latest recommendation")
def get_recommendation(vault: str):
    rec = get_store().get_recommendation(vault)
    if rec is None:
        raise HTTPException(
            status_code=404,
            detail={"error": "no_recommendation", "message": f"No recommendation stored for '{vault}'"},
        )
    return rec.to_dict()
