import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from speakerdesk.core import config
from speakerdesk.core.logging_config import setup_logging
from speakerdesk.database import Base, engine
from speakerdesk.models import page, speaker, user  # noqa: F401
from speakerdesk.routes import auth_routes, page_routes, speaker_routes

setup_logging(config.LOG_LEVEL, config.LOG_FILE or None)
config.validate_runtime_config()

app = FastAPI(title='SpeakerDesk API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    try:
        Base.metadata.create_all(bind=engine)
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'SpeakerDesk API Running'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(page_routes.router, prefix='/pages')
app.include_router(speaker_routes.router, prefix='/speakers')
