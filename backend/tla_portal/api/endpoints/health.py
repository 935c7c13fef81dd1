from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Liveness check for the load balancer"""
    return {"status": "healthy", "service": request.app.state.settings.APP_NAME}
