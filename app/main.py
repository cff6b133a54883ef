import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import CORS_ORIGINS, LOG_LEVEL
from app.db.base import Base
from app.db.session import engine
from app.models import study  # noqa: F401  (registers the table)
from app.routers import router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Scripture Path")

# Add CORS middleware to allow cross-origin requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,  # Allow requests from the frontend
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Create tables at application startup
@app.on_event("startup")
async def startup_db_client():
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready")


app.include_router(router)
