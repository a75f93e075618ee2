from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app_logging import get_logger, setup_logging
from config import get_settings
from contact_repository import ContactRepository
from db_models import FinalResponse, IdentifyRequest
from db_setup import init_db
from errors import IdentifyError, MissingIdentifierError
from identify_service import IdentifyService

settings = get_settings()
logger = get_logger("identify.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.LOG_LEVEL)
    init_db(settings.DATABASE_PATH)
    logger.info("database_ready", path=settings.DATABASE_PATH)
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    lifespan=lifespan,
)


def get_identify_service() -> IdentifyService:
    return IdentifyService(ContactRepository(settings.DATABASE_PATH, settings.DB_TIMEOUT))


@app.exception_handler(RequestValidationError)
async def invalid_body_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": "invalid JSON body"})


@app.get("/")
async def root():
    return {"message": "Bitespeed API is up"}


@app.post("/identify", response_model=FinalResponse)
def identify(request: IdentifyRequest, service: IdentifyService = Depends(get_identify_service)):
    try:
        contact = service.identify(request.email, request.phoneNumber)
    except MissingIdentifierError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except IdentifyError:
        logger.exception("identify_failed")
        raise HTTPException(status_code=500, detail="Internal server error")

    return FinalResponse(contact=contact)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
