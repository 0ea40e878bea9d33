import asyncio
import traceback
from typing import Optional

import pymongo

from app.core.config import settings
from app.core.logging import get_logger
from app.models.schemas import LearningProfile

logger = get_logger(__name__)


class LearningProfileStore:
    """Read-only access to per-user learning profiles kept in MongoDB"""

    def __init__(self, connection_string: Optional[str] = None, client: Optional[pymongo.MongoClient] = None):
        """
        Connect lazily to MongoDB. Without a connection string the store is
        disabled and every lookup returns None.
        """
        if connection_string is None:
            connection_string = settings.MONGODB_CONNECTION_STRING

        self.enabled = bool(connection_string) or client is not None
        self.profiles = None

        if not self.enabled:
            logger.info("No MongoDB connection string set, learning profiles disabled")
            return

        # MongoClient does not connect until the first query
        self.client = client or pymongo.MongoClient(connection_string, serverSelectionTimeoutMS=3000)
        self.db = self.client[settings.MONGODB_DATABASE]
        self.profiles = self.db[settings.MONGODB_PROFILE_COLLECTION]

    def _find_profile(self, user_id: str) -> Optional[LearningProfile]:
        document = self.profiles.find_one({"userId": user_id}, {"_id": 0})
        if not document:
            logger.info(f"No learning profile for user {user_id}")
            return None

        document.setdefault("userId", user_id)
        return LearningProfile.model_validate(document)

    async def get_profile(self, user_id: Optional[str]) -> Optional[LearningProfile]:
        """Fetch a user's learning profile, or None when missing or unavailable"""
        if not user_id or not self.enabled:
            return None

        try:
            return await asyncio.to_thread(self._find_profile, user_id)
        except Exception as e:
            logger.warning(f"Error loading learning profile for {user_id}: {str(e)}")
            logger.debug(traceback.format_exc())
            return None


def format_profile(profile: Optional[LearningProfile]) -> str:
    """Render the notes the model should keep in mind about this student"""
    if not profile:
        return ""

    lines = []
    if profile.struggling_with:
        lines.append(f"Topics this student has struggled with before: {', '.join(profile.struggling_with)}")
        lines.append("- Reference these when relevant")
        lines.append("- Offer to revisit if related to the current topic")
        lines.append("- Be extra patient with these areas")
    if profile.strengths:
        lines.append(f"Strengths: {', '.join(profile.strengths)}")
    if profile.preferred_complexity:
        lines.append(f"Preferred explanation level: {profile.preferred_complexity}")

    return "\n".join(lines)
