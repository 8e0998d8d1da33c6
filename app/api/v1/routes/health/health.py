from fastapi import APIRouter

from app.core.response import success_response


router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    return success_response({"status": "ok"})
