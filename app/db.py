"""MongoDB connection and Beanie document registration."""
import logging

from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient

from app.config import settings
from app.models import DOCUMENT_MODELS

logger = logging.getLogger(__name__)

_client = None


async def init_db():
    """Connect, register every document model and build the declared indexes.

    The unique indexes (session token, one check-in per trainee per session,
    user email, file key) are what the attendance and upload paths rely on.
    """
    global _client
    _client = AsyncIOMotorClient(settings.mongodb_url, serverSelectionTimeoutMS=5000)
    await init_beanie(database=_client[settings.mongodb_db_name], document_models=DOCUMENT_MODELS)
    logger.info("Connected to MongoDB database %s", settings.mongodb_db_name)


async def db_shutdown():
    global _client
    if _client:
        _client.close()
        _client = None
