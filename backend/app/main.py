# app/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1 import auth, questions, quizzes, users
from app.core.config import settings
from app.core.errors import register_exception_handlers

# import DB Base so we can create tables on startup
from app.db.session import Base, engine

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("quizarena")

app = FastAPI(title="QuizArena API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# include routers under /api/v1
app.include_router(auth.router, prefix="/api/v1")
app.include_router(questions.router, prefix="/api/v1")
app.include_router(quizzes.router, prefix="/api/v1")
app.include_router(users.router, prefix="/api/v1")


@app.get("/health")
def health():
    return {"success": True, "message": "ok"}


@app.on_event("startup")
def startup_event():
    # Create DB tables if they don't exist (good for local/dev)
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/checked.")
