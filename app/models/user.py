from pydantic import BaseModel
from typing import Optional

# Users are owned by another service; only the fields read here are modelled

class User(BaseModel):
    id: str
    name: str
    email: str
    role: str = "learner"  # learner, teacher, admin
    profile_picture: Optional[str] = ""