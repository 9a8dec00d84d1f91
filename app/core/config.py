from typing import List
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load the .env file from the project root
# Assuming the script is run from the project root
load_dotenv()

class Settings(BaseSettings):
    # JWT
    JWT_SECRET: str = "your-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # MongoDB
    MONGO_URL: str
    DB_NAME: str

    # Identifier format of the user/listing/rating documents: uuid or objectid
    ID_FORMAT: str = "uuid"

    # Include raw exception text in internal_error responses
    EXPOSE_ERROR_DETAILS: bool = False

    CORS_ORIGINS: List[str] = ["*"]
    LOG_LEVEL: str = "INFO"

    class Config:
        case_sensitive = True

settings = Settings()
