from fastapi import FastAPI, APIRouter, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware
import logging

from app.core.config import settings
from app.core.errors import InternalError, RatingError, ValidationError
from app.db.session import close_mongo_connection, ensure_indexes, get_db
from app.routers import ratings

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create the main app without a prefix
app = FastAPI(title="Skill exchange ratings")

# Create a router with the /api prefix
api_router = APIRouter(prefix="/api")

@api_router.get("/health")
async def health():
    return {"status": "ok"}

api_router.include_router(ratings.router)

# Include the router in the main app
app.include_router(api_router)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(RatingError)
async def rating_error_handler(request: Request, exc: RatingError):
    body = exc.to_response()
    if not settings.EXPOSE_ERROR_DETAILS:
        body.pop("detail", None)
    return JSONResponse(status_code=exc.status_code, content=body)

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    error = ValidationError("Invalid request data")
    body = error.to_response()
    body["fields"] = [".".join(str(part) for part in err["loc"]) for err in exc.errors()]
    return JSONResponse(status_code=error.status_code, content=body)

@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    # ServerErrorMiddleware re-raises after this responds, so the server logs the traceback
    error = InternalError("Internal server error", detail=str(exc))
    return await rating_error_handler(request, error)

@app.on_event("startup")
async def create_indexes():
    await ensure_indexes(get_db())

@app.on_event("shutdown")
async def shutdown_db_client():
    close_mongo_connection()
