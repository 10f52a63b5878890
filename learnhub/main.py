"""
LearnHub - Main Application
Courses, lessons, quizzes, enrollments and user profiles under /api
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from learnhub.auth.identity import AccountStore, IdentityResolver
from learnhub.auth.tokens import CredentialVerifier
from learnhub.config import Settings, configure_logging
from learnhub.courses.course_router import router as course_router
from learnhub.courses.database import create_indexes, create_search_index
from learnhub.courses.enrollment_router import router as enrollment_router
from learnhub.courses.lesson_router import router as lesson_router
from learnhub.courses.quiz_router import router as quiz_router
from learnhub.errors import LMSError, STATUS_BY_CODE
from learnhub.media.uploader import AssetUploader, CloudinaryUploader
from learnhub.users.user_router import router as user_router

logger = logging.getLogger("learnhub")


async def handle_lms_error(request: Request, exc: LMSError) -> JSONResponse:
    status = STATUS_BY_CODE.get(exc.code, 400)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status, content={"detail": exc.message, "code": exc.code})


def create_app(
    settings: Settings,
    database: Optional[AsyncIOMotorDatabase] = None,
    uploader: Optional[AssetUploader] = None,
) -> FastAPI:
    """Build the API; tests pass their own database and uploader"""
    app = FastAPI(title="LearnHub API")

    if database is None:
        client = AsyncIOMotorClient(settings.mongo_url)
        database = client[settings.mongo_db_name]

    app.state.settings = settings
    app.state.db = database
    app.state.uploader = uploader or CloudinaryUploader(settings)
    app.state.resolver = IdentityResolver(CredentialVerifier(settings), AccountStore(database))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(LMSError, handle_lms_error)

    # ==================== ROUTER REGISTRATION ====================
    app.include_router(course_router, prefix="/api")
    app.include_router(lesson_router, prefix="/api")
    app.include_router(quiz_router, prefix="/api")
    app.include_router(enrollment_router, prefix="/api")
    app.include_router(user_router, prefix="/api")
    # ============================================================

    @app.on_event("startup")
    async def startup_event():
        await create_indexes(app.state.db)
        await create_search_index(app.state.db)
        logger.info("LearnHub started (db=%s)", settings.mongo_db_name)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


def build_app() -> FastAPI:
    """Entry point for ``uvicorn learnhub.main:build_app --factory``"""
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    return create_app(settings)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(build_app(), host="0.0.0.0", port=8000)
