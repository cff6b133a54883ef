from fastapi import APIRouter
from app.routers.studies import router as studies_router
from app.routers.verses import router as verses_router

router = APIRouter()

# Include all routers
router.include_router(studies_router, prefix="/studies", tags=["studies"])
router.include_router(verses_router, prefix="/verses", tags=["verses"])
