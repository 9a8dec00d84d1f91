from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING
from app.core.config import settings

client = AsyncIOMotorClient(settings.MONGO_URL, maxPoolSize=10, minPoolSize=10)
db = client[settings.DB_NAME]

def get_db():
    return db

async def ensure_indexes(database):
    """Create the ratings indexes, including the one-rating-per-triple constraint"""
    await database.ratings.create_index(
        [("learner_id", ASCENDING), ("teacher_id", ASCENDING), ("listing_id", ASCENDING)],
        unique=True,
        name="unique_learner_teacher_listing",
    )
    await database.ratings.create_index([("id", ASCENDING)], unique=True)
    await database.ratings.create_index([("listing_id", ASCENDING), ("created_at", DESCENDING)])
    await database.ratings.create_index([("teacher_id", ASCENDING), ("created_at", DESCENDING)])
    await database.ratings.create_index([("learner_id", ASCENDING), ("created_at", DESCENDING)])

def close_mongo_connection():
    client.close()
