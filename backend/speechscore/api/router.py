from fastapi import APIRouter

from speechscore.api.routes.evaluations import router as evaluations_router
from speechscore.api.routes.skills import router as skills_router

api_router = APIRouter()
api_router.include_router(evaluations_router)
api_router.include_router(skills_router)


@api_router.get("/healthz")
def healthcheck() -> dict[str, str]:
    return {"status": "ok"}
