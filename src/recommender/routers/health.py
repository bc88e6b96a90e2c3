from fastapi import APIRouter
from pydantic import BaseModel

router = APIRouter(tags=["health"])

SERVICE_NAME = "recommender"


class HealthResponse(BaseModel):
    status: str
    service: str


@router.get("/health", response_model=HealthResponse, status_code=200)
async def healthcheck():
    """Liveness only; backend outages degrade recommendations instead of failing them."""
    return {"status": "ok", "service": SERVICE_NAME}
