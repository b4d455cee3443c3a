"""
FastAPI Web Service for the Artwork Recommender System

Provides RESTful endpoints for:
- Getting personalised artwork recommendations
- Recording collector feedback
- Model inspection and persistence
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from config.settings import configure_logging, get_settings, validate_settings
from services.recommendation_engine import RecommendationEngine

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Artwork Recommender System API",
    description="Personalised artwork recommendations using per-user contextual bandits",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Global recommendation engine instance
recommendation_engine = None


class RecommendationResponse(BaseModel):
    user_id: str
    recommendations: List[Dict[str, Any]]
    response_time: float
    timestamp: datetime


class FeedbackRequest(BaseModel):
    user_id: str = Field(..., description="Collector identifier")
    artwork_id: str = Field(..., description="Artwork identifier")
    action: str = Field("view", description="Collector action (view/click/favorite/inquire/purchase/ignore)")
    reward: Optional[float] = Field(None, ge=-1.0, le=1.0, description="Explicit reward overriding the action default")
    device_type: Optional[str] = Field(None, description="Device type (mobile/tablet/desktop)")


class FeedbackResponse(BaseModel):
    success: bool
    message: str
    timestamp: datetime


class EngineMetrics(BaseModel):
    total_requests: int
    empty_results: int
    feedback_events: int
    narrative_fallbacks: int
    avg_response_time: float


def get_config():
    return get_settings()


def get_recommendation_engine():
    global recommendation_engine
    if recommendation_engine is None:
        config = get_config()
        recommendation_engine = RecommendationEngine(config.model_dump())
    return recommendation_engine


@app.on_event("startup")
async def startup_event():
    """Validate settings and initialise the recommendation engine."""
    global recommendation_engine
    config = get_config()
    configure_logging(config)
    try:
        validate_settings(config)
        recommendation_engine = RecommendationEngine(config.model_dump())
        logger.info("Recommendation engine initialised successfully")
    except Exception as e:
        logger.error(f"Failed to initialise recommendation engine: {e}")
        raise


@app.on_event("shutdown")
async def shutdown_event():
    """Persist dirty models before the process exits."""
    if recommendation_engine is not None:
        await recommendation_engine.close()
        logger.info("Recommendation engine closed")


@app.get("/")
async def root():
    return {
        "message": "Artwork Recommender System API",
        "version": "1.0.0",
        "status": "healthy",
        "timestamp": datetime.now()
    }


@app.get("/recommendations/{user_id}", response_model=RecommendationResponse)
async def get_recommendations(
    user_id: str,
    limit: Optional[int] = Query(None, ge=1, le=50, description="Number of recommendations"),
    device: Optional[str] = Query(None, description="Device type (mobile/tablet/desktop)"),
    engine: RecommendationEngine = Depends(get_recommendation_engine)
):
    """
    Get personalised artwork recommendations.

    Ranking failures never surface here: the engine degrades to an empty list.
    """
    start_time = datetime.now()

    recommendations = await engine.get_personalized_recommendations(
        user_id, limit=limit, device_type=device)

    return RecommendationResponse(
        user_id=user_id,
        recommendations=[rec.to_dict() for rec in recommendations],
        response_time=(datetime.now() - start_time).total_seconds(),
        timestamp=datetime.now()
    )


@app.post("/feedback", response_model=FeedbackResponse)
async def record_feedback(
    request: FeedbackRequest,
    engine: RecommendationEngine = Depends(get_recommendation_engine)
):
    """Record a collector action and update their model."""
    updated = await engine.record_feedback(
        user_id=request.user_id,
        artwork_id=request.artwork_id,
        action=request.action,
        reward=request.reward,
        device_type=request.device_type
    )
    if not updated:
        raise HTTPException(status_code=404, detail=f"Could not record feedback for artwork {request.artwork_id}")

    logger.info(f"Recorded feedback: user={request.user_id}, artwork={request.artwork_id}, action={request.action}")
    return FeedbackResponse(
        success=True,
        message=f"Feedback recorded successfully: {request.action}",
        timestamp=datetime.now()
    )


@app.get("/models/{user_id}")
async def get_model_statistics(
    user_id: str,
    engine: RecommendationEngine = Depends(get_recommendation_engine)
):
    """Summary of one collector's model."""
    try:
        return await engine.get_model_statistics(user_id)
    except Exception as e:
        logger.error(f"Error getting model statistics: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to get model statistics: {str(e)}")


@app.post("/models/flush")
async def flush_models(
    user_id: Optional[str] = None,
    engine: RecommendationEngine = Depends(get_recommendation_engine)
):
    """Persist dirty models now instead of waiting for the debounce timer."""
    success = await engine.flush(user_id)
    if not success:
        raise HTTPException(status_code=500, detail="Failed to persist one or more models")
    return {
        "success": True,
        "message": f"Flushed {'model for ' + user_id if user_id else 'all dirty models'}",
        "timestamp": datetime.now()
    }


@app.get("/metrics", response_model=EngineMetrics)
async def get_metrics(engine: RecommendationEngine = Depends(get_recommendation_engine)):
    return EngineMetrics(**engine.get_metrics())


@app.get("/health")
async def health_check(engine: RecommendationEngine = Depends(get_recommendation_engine)):
    try:
        metrics = engine.get_metrics()
        return {
            "status": "healthy",
            "recommendation_engine": "operational",
            "total_requests": metrics['total_requests'],
            "avg_response_time": metrics['avg_response_time'],
            "timestamp": datetime.now()
        }
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return {
            "status": "unhealthy",
            "error": str(e),
            "timestamp": datetime.now()
        }


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
