from fastapi import APIRouter, Depends

from app.core.config import settings
from app.core.errors import ForbiddenError
from app.models.rating import RatingCreate, RatingUpdate
from app.models.user import User
from app.db.session import get_db
from app.services.auth import get_current_user
from app.services.identifiers import get_id_predicate
from app.services.rating import RatingService

router = APIRouter()

# Resolved once so an unknown ID_FORMAT fails at import rather than per request
is_valid_id = get_id_predicate(settings.ID_FORMAT)

def get_rating_service(db=Depends(get_db)) -> RatingService:
    return RatingService(db, is_valid_id)

def respond(message: str, **payload):
    return {"message": message, "success": True, **payload}

@router.post("/ratings", status_code=201)
async def create_rating(
    rating_data: RatingCreate,
    current_user: User = Depends(get_current_user),
    service: RatingService = Depends(get_rating_service)
):
    """Rate a teacher for a listing after a completed session"""
    if rating_data.learner_id and rating_data.learner_id != current_user.id:
        raise ForbiddenError("You can only submit ratings as yourself")

    rating = await service.create_rating(
        rating_data.learner_id,
        rating_data.teacher_id,
        rating_data.listing_id,
        rating_data.score,
    )
    return respond("Rating created successfully", rating=rating)

@router.put("/ratings/{rating_id}")
async def update_rating(
    rating_id: str,
    rating_data: RatingUpdate,
    current_user: User = Depends(get_current_user),
    service: RatingService = Depends(get_rating_service)
):
    rating = await service.update_rating(rating_id, rating_data.score, current_user.id)
    return respond("Rating updated successfully", rating=rating)

@router.delete("/ratings/{rating_id}")
async def delete_rating(
    rating_id: str,
    current_user: User = Depends(get_current_user),
    service: RatingService = Depends(get_rating_service)
):
    deleted = await service.delete_rating(rating_id, current_user.id)
    return respond("Rating deleted successfully", deleted_rating=deleted)

@router.get("/ratings/me")
async def get_my_ratings(
    current_user: User = Depends(get_current_user),
    service: RatingService = Depends(get_rating_service)
):
    """Ratings the current user has given"""
    result = await service.list_my_ratings(current_user.id)
    return respond("User ratings retrieved successfully", **result)

@router.get("/ratings/me/received")
async def get_my_received_ratings(
    current_user: User = Depends(get_current_user),
    service: RatingService = Depends(get_rating_service)
):
    """Ratings the current user has received as a teacher"""
    result = await service.list_received_ratings(current_user.id, check_exists=False)
    return respond("Ratings you received as a teacher retrieved successfully", **result)

@router.get("/ratings/listing/{listing_id}")
async def get_listing_ratings(listing_id: str, service: RatingService = Depends(get_rating_service)):
    result = await service.list_ratings_for_listing(listing_id)
    return respond("Ratings retrieved successfully", **result)

@router.get("/ratings/listing/{listing_id}/average")
async def get_listing_average(listing_id: str, service: RatingService = Depends(get_rating_service)):
    result = await service.get_average_rating(listing_id)
    if result["average_score"] is None:
        return respond("Average rating not available yet", **result)
    return respond("Average rating retrieved successfully", **result)

@router.get("/ratings/learner/{learner_id}")
async def get_learner_ratings(learner_id: str, service: RatingService = Depends(get_rating_service)):
    """Ratings given by a specific learner"""
    result = await service.list_ratings_by_learner(learner_id)
    return respond(f"Ratings given by {result['learner']['name']} retrieved successfully", **result)

@router.get("/ratings/teacher/{teacher_id}")
async def get_teacher_ratings(teacher_id: str, service: RatingService = Depends(get_rating_service)):
    """Ratings received by a specific teacher"""
    result = await service.list_received_ratings(teacher_id)
    return respond("Teacher ratings retrieved successfully", **result)

@router.get("/ratings/teacher/{teacher_id}/stats")
async def get_teacher_stats(teacher_id: str, service: RatingService = Depends(get_rating_service)):
    result = await service.get_teacher_rating_stats(teacher_id)
    message = result.pop("message")
    return respond(message, **result)
