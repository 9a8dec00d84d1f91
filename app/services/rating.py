from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from functools import wraps
from typing import Any, Dict, Iterable, List, Optional
import logging

from pymongo.errors import DuplicateKeyError

from app.core.errors import (
    ConflictError,
    ForbiddenError,
    InternalError,
    NotFoundError,
    RatingError,
    ValidationError,
)
from app.models.rating import MAX_SCORE, MIN_SCORE, DeletedRating, Rating
from app.services.identifiers import IdPredicate

logger = logging.getLogger(__name__)

MINIMUM_RATINGS_FOR_AVERAGE = 5
RECENT_RATINGS_LIMIT = 5
SESSION_COMPLETED = "completed"
TEACHER_ROLE = "teacher"
AVERAGE_NOTE = f"At least {MINIMUM_RATINGS_FOR_AVERAGE} ratings are required to show average rating"

LEARNER_FIELDS = ("name", "email")
TEACHER_FIELDS = ("name", "email")
LISTING_TITLE_FIELDS = ("title",)
PROFILE_FIELDS = ("name", "email", "profile_picture")
LISTING_DETAIL_FIELDS = ("title", "description", "fee", "category")


def round_score(value: float) -> float:
    """Round to one decimal, halves away from zero on the exact binary value"""
    return float(Decimal(value).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def average_score(scores: List[int]) -> Optional[float]:
    if not scores:
        return None
    return round_score(sum(scores) / len(scores))


def thresholded_average(scores: List[int]) -> Optional[float]:
    """Average shown publicly only once enough ratings exist"""
    if len(scores) < MINIMUM_RATINGS_FOR_AVERAGE:
        return None
    return average_score(scores)


def score_distribution(scores: Iterable[int]) -> Dict[int, int]:
    distribution = {score: 0 for score in range(MIN_SCORE, MAX_SCORE + 1)}
    for score in scores:
        # Scores outside the valid range can only come from data written around the service
        if score in distribution:
            distribution[score] += 1
    return distribution


def score_statistics(scores: List[int]) -> Dict[str, int]:
    return {
        "highest_score": max(scores),
        "lowest_score": min(scores),
        "ratings_above_4": sum(1 for s in scores if s >= 4),
        "ratings_below_3": sum(1 for s in scores if s <= 2),
    }


def validate_score(score: Any):
    # bool is an int subclass but never a valid score
    if (
        score is None
        or isinstance(score, bool)
        or not isinstance(score, int)
        or not MIN_SCORE <= score <= MAX_SCORE
    ):
        raise ValidationError(f"Rating must be between {MIN_SCORE} and {MAX_SCORE}")


def classified(message: str):
    """Convert any unclassified failure of an operation into an InternalError"""
    def decorator(f):
        @wraps(f)
        async def wrapper(*args, **kwargs):
            try:
                return await f(*args, **kwargs)
            except RatingError as e:
                logger.warning("%s rejected: %s (%s)", f.__name__, e.message, e.kind)
                raise
            except Exception as e:
                logger.exception("%s failed", f.__name__)
                raise InternalError(message, detail=str(e)) from e
        return wrapper
    return decorator


class RatingService:
    """Rating operations over the ``ratings`` collection.

    Users, skill listings and sessions are only ever read. Identifier
    well-formedness is decided by ``is_valid_id`` so the service does not
    assume a particular store's key format.
    """

    def __init__(self, db, is_valid_id: IdPredicate):
        self.db = db
        self.is_valid_id = is_valid_id

    def _require_id(self, value: Optional[str], label: str):
        if not value:
            raise ValidationError(f"{label} ID is required")
        if not self.is_valid_id(value):
            raise ValidationError(f"Invalid {label.lower()} ID format")

    async def _find_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        return await self.db.users.find_one({"id": user_id}, {"_id": 0})

    async def _populate(
        self,
        ratings: List[Dict[str, Any]],
        learner_fields: Optional[Iterable[str]] = None,
        teacher_fields: Optional[Iterable[str]] = None,
        listing_fields: Optional[Iterable[str]] = None,
    ) -> List[Dict[str, Any]]:
        """Attach learner/teacher/listing summaries to each rating document.

        A reference that no longer resolves is attached as ``None``.
        """
        cache = {}

        async def lookup(collection: str, doc_id: str, fields: Iterable[str]):
            key = (collection, doc_id)
            if key not in cache:
                projection = {"_id": 0, "id": 1}
                projection.update({field: 1 for field in fields})
                cache[key] = await getattr(self.db, collection).find_one({"id": doc_id}, projection)
            return cache[key]

        result = []
        for rating in ratings:
            item = dict(rating)
            if learner_fields is not None:
                item["learner"] = await lookup("users", rating["learner_id"], learner_fields)
            if teacher_fields is not None:
                item["teacher"] = await lookup("users", rating["teacher_id"], teacher_fields)
            if listing_fields is not None:
                item["listing"] = await lookup("skill_listings", rating["listing_id"], listing_fields)
            result.append(item)
        return result

    async def _find_ratings(self, query: Dict[str, Any]) -> List[Dict[str, Any]]:
        cursor = self.db.ratings.find(query, {"_id": 0}).sort("created_at", -1)
        return await cursor.to_list(None)

    @classified("Failed to create rating")
    async def create_rating(self, learner_id, teacher_id, listing_id, score) -> Dict[str, Any]:
        if not learner_id or not teacher_id or not listing_id or score is None:
            raise ValidationError("All fields are required")
        validate_score(score)

        if not await self._find_user(learner_id):
            raise NotFoundError("Learner not found")
        if not await self._find_user(teacher_id):
            raise NotFoundError("Teacher not found")
        if not await self.db.skill_listings.find_one({"id": listing_id}, {"_id": 0, "id": 1}):
            raise NotFoundError("Skill listing not found")

        completed_session = await self.db.sessions.find_one({
            "learner_id": learner_id,
            "teacher_id": teacher_id,
            "listing_id": listing_id,
            "status": SESSION_COMPLETED,
        })
        if not completed_session:
            raise ForbiddenError("You can only rate courses you have completed")

        triple = {"learner_id": learner_id, "teacher_id": teacher_id, "listing_id": listing_id}
        if await self.db.ratings.find_one(triple):
            raise ConflictError("You have already rated this listing")

        rating = Rating(score=score, **triple)
        try:
            # The unique index closes the window between the check above and the insert
            await self.db.ratings.insert_one(rating.model_dump())
        except DuplicateKeyError:
            raise ConflictError("You have already rated this listing")

        logger.info("Rating %s created by learner %s for listing %s", rating.id, learner_id, listing_id)
        populated = await self._populate(
            [rating.model_dump()],
            learner_fields=LEARNER_FIELDS,
            teacher_fields=TEACHER_FIELDS,
            listing_fields=LISTING_TITLE_FIELDS,
        )
        return populated[0]

    @classified("Failed to update rating")
    async def update_rating(self, rating_id, new_score, requesting_user_id: str) -> Dict[str, Any]:
        self._require_id(rating_id, "Rating")
        validate_score(new_score)

        existing_rating = await self.db.ratings.find_one({"id": rating_id}, {"_id": 0})
        if not existing_rating:
            raise NotFoundError("Rating not found")

        if existing_rating["learner_id"] != requesting_user_id:
            raise ForbiddenError("You can only edit your own ratings")

        update_data = {"score": new_score, "updated_at": datetime.utcnow()}
        await self.db.ratings.update_one({"id": rating_id}, {"$set": update_data})
        existing_rating.update(update_data)

        logger.info("Rating %s updated to %d", rating_id, new_score)
        return Rating(**existing_rating).model_dump()

    @classified("Failed to delete rating")
    async def delete_rating(self, rating_id, requesting_user_id: str) -> Dict[str, Any]:
        self._require_id(rating_id, "Rating")

        rating = await self.db.ratings.find_one({"id": rating_id}, {"_id": 0})
        if not rating:
            raise NotFoundError("Rating not found")

        # Only the learner who created a rating may delete it
        if rating["learner_id"] != requesting_user_id:
            raise ForbiddenError("You can only delete your own ratings")

        await self.db.ratings.delete_one({"id": rating_id})

        logger.info("Rating %s deleted by learner %s", rating_id, requesting_user_id)
        return DeletedRating(
            id=rating["id"],
            learner_id=rating["learner_id"],
            teacher_id=rating["teacher_id"],
            listing_id=rating["listing_id"],
            score=rating["score"],
        ).model_dump()

    @classified("Failed to retrieve listing ratings")
    async def list_ratings_for_listing(self, listing_id) -> Dict[str, Any]:
        if not listing_id:
            raise ValidationError("Listing ID is required")

        ratings = await self._find_ratings({"listing_id": listing_id})
        scores = [r["score"] for r in ratings]
        populated = await self._populate(
            ratings,
            learner_fields=LEARNER_FIELDS,
            teacher_fields=TEACHER_FIELDS,
            listing_fields=LISTING_TITLE_FIELDS,
        )
        return {
            "ratings": populated,
            "total_count": len(ratings),
            "average_score": thresholded_average(scores),
            "minimum_required": MINIMUM_RATINGS_FOR_AVERAGE,
            "note": AVERAGE_NOTE if len(ratings) < MINIMUM_RATINGS_FOR_AVERAGE else None,
        }

    @classified("Failed to retrieve average rating")
    async def get_average_rating(self, listing_id) -> Dict[str, Any]:
        if not listing_id:
            raise ValidationError("Listing ID is required")

        ratings = await self.db.ratings.find(
            {"listing_id": listing_id}, {"_id": 0, "score": 1}
        ).to_list(None)
        scores = [r["score"] for r in ratings]
        return {
            "average_score": thresholded_average(scores),
            "total_count": len(scores),
            "minimum_required": MINIMUM_RATINGS_FOR_AVERAGE,
            "note": AVERAGE_NOTE if len(scores) < MINIMUM_RATINGS_FOR_AVERAGE else None,
        }

    async def _authored_ratings(self, learner_id: str) -> List[Dict[str, Any]]:
        ratings = await self._find_ratings({"learner_id": learner_id})
        return await self._populate(
            ratings,
            teacher_fields=PROFILE_FIELDS,
            listing_fields=LISTING_DETAIL_FIELDS,
        )

    async def _received_ratings(self, teacher_id: str) -> List[Dict[str, Any]]:
        ratings = await self._find_ratings({"teacher_id": teacher_id})
        return await self._populate(
            ratings,
            learner_fields=PROFILE_FIELDS,
            listing_fields=LISTING_DETAIL_FIELDS,
        )

    @classified("Failed to retrieve learner ratings")
    async def list_ratings_by_learner(self, learner_id) -> Dict[str, Any]:
        self._require_id(learner_id, "Learner")

        learner = await self._find_user(learner_id)
        if not learner:
            raise NotFoundError("Learner not found")

        ratings = await self._authored_ratings(learner_id)
        return {
            "ratings": ratings,
            "learner": {"id": learner["id"], "name": learner["name"], "email": learner["email"]},
            "total_count": len(ratings),
        }

    @classified("Failed to retrieve your ratings")
    async def list_my_ratings(self, current_user_id: str) -> Dict[str, Any]:
        ratings = await self._authored_ratings(current_user_id)
        return {"ratings": ratings, "total_count": len(ratings)}

    @classified("Failed to retrieve received ratings")
    async def list_received_ratings(self, teacher_id, check_exists: bool = True) -> Dict[str, Any]:
        """Ratings received by a teacher.

        ``check_exists`` is turned off for the self-scoped variant, where the
        identity was already resolved by authentication.
        """
        if check_exists:
            self._require_id(teacher_id, "Teacher")
            if not await self._find_user(teacher_id):
                raise NotFoundError("Teacher not found")

        ratings = await self._received_ratings(teacher_id)
        return {"ratings": ratings, "total_count": len(ratings)}

    @classified("Failed to retrieve teacher rating statistics")
    async def get_teacher_rating_stats(self, teacher_id) -> Dict[str, Any]:
        self._require_id(teacher_id, "Teacher")

        teacher = await self._find_user(teacher_id)
        if not teacher:
            raise NotFoundError("Teacher not found")
        if teacher.get("role") != TEACHER_ROLE:
            raise ValidationError("This user is not a teacher")

        ratings = await self._find_ratings({"teacher_id": teacher_id})
        teacher_summary = {
            "id": teacher["id"],
            "name": teacher["name"],
            "email": teacher["email"],
            "role": teacher["role"],
        }

        if not ratings:
            return {
                "message": f"{teacher['name']} has not received any ratings yet",
                "average_score": None,
                "total_count": 0,
                "teacher": teacher_summary,
                "rating_distribution": {},
                "unique_listings_count": 0,
                "recent_ratings": [],
                "statistics": None,
                "note": "This teacher hasn't received any ratings yet",
            }

        scores = [r["score"] for r in ratings]
        recent = await self._populate(
            ratings[:RECENT_RATINGS_LIMIT],
            learner_fields=("name",),
            listing_fields=("title",),
        )
        return {
            "message": f"Average ratings for {teacher['name']} retrieved successfully",
            "average_score": average_score(scores),
            "total_count": len(ratings),
            "teacher": teacher_summary,
            "rating_distribution": score_distribution(scores),
            "unique_listings_count": len({r["listing_id"] for r in ratings}),
            "recent_ratings": [
                {
                    "id": r["id"],
                    "score": r["score"],
                    "learner": r["learner"]["name"] if r["learner"] else None,
                    "listing": r["listing"]["title"] if r["listing"] else None,
                    "created_at": r["created_at"],
                }
                for r in recent
            ],
            "statistics": score_statistics(scores),
        }
