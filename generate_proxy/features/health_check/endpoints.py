from fastapi import APIRouter, Depends
from .handler import HealthCheckHandler
from .query import HealthCheckResponse

router = APIRouter()

@router.get("/health", response_model=HealthCheckResponse, tags=["Monitoring"])
async def health_check(handler: HealthCheckHandler = Depends()):
    """Reports whether the OpenAI API is reachable and a key is configured."""
    return await handler.handle()
