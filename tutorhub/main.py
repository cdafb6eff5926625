import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from tutorhub.core import config
from tutorhub.core.exceptions import DomainException
from tutorhub.database import Base, engine, ensure_availability_schema, ensure_reservation_schema
from tutorhub.models import availability, category, reservation, teacher, user  # noqa: F401
from tutorhub.routes import auth_routes, availability_routes, reservation_routes

logger = logging.getLogger(__name__)

app = FastAPI(title='Tutorhub Booking API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)


@app.exception_handler(DomainException)
async def handle_domain_exception(request: Request, exc: DomainException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error('Unhandled domain error on %s: %s', request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={'detail': exc.to_dict()})


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_availability_schema()
        ensure_reservation_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'Tutorhub Booking API Running'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(availability_routes.router, prefix='/availability')
app.include_router(reservation_routes.router, prefix='/reservations')
app.include_router(reservation_routes.admin_router, prefix='/admin')
