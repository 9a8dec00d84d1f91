from pydantic import BaseModel, Field, StrictInt
from typing import Optional
import uuid
from datetime import datetime

MIN_SCORE = 1
MAX_SCORE = 5

class Rating(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    learner_id: str
    teacher_id: str
    listing_id: str
    score: int = Field(..., ge=MIN_SCORE, le=MAX_SCORE)  # 1-5 stars
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

# Request bodies leave every field optional so missing and out-of-range
# values are reported by the service as validation errors. Scores are strict so
# JSON booleans, strings and floats are rejected instead of coerced
class RatingCreate(BaseModel):
    learner_id: Optional[str] = None
    teacher_id: Optional[str] = None
    listing_id: Optional[str] = None
    score: Optional[StrictInt] = None

class RatingUpdate(BaseModel):
    score: Optional[StrictInt] = None

class DeletedRating(BaseModel):
    id: str
    learner_id: str
    teacher_id: str
    listing_id: str
    score: int
    deleted_at: datetime = Field(default_factory=datetime.utcnow)
