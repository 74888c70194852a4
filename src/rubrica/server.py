"""
HTTP entry points.

Routes:
  POST   /process-rubric              extract criteria from an uploaded rubric
  POST   /grade-submission            grade one submission (awaits the result)
  POST   /submissions/{id}/retry      reset and re-grade in the background
  DELETE /submissions/{id}            delete a submission and its file
  GET    /health

Errors are rendered as ``{"error": <public message>}`` with the status code
carried by the exception class. Internal details only go to the log.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from rubrica.ai.base import PydanticAIBackend
from rubrica.ai.protocol import AIBackendProtocol
from rubrica.auth import JWTTokenResolver, TokenResolver
from rubrica.errors import AuthRequiredError, InvalidInputError, RubricaError
from rubrica.io.storage import BlobStore, FileFetcher, LocalBlobStore
from rubrica.logging import get_logger
from rubrica.models.api import (
    ExtractCriteriaRequest,
    ErrorResponse,
    ExtractCriteriaResponse,
    GradeSubmissionRequest,
    GradeSubmissionResponse,
    RetryGradingRequest,
)
from rubrica.pipeline.criteria import CriteriaExtractionPipeline
from rubrica.pipeline.grading import GradingPipeline
from rubrica.ratelimit import RateLimiter
from rubrica.settings import RubricaSettings, get_settings
from rubrica.store.database import Database
from rubrica.store.repository import ServiceRepository, UserScopedRepository
from rubrica.submissions import SubmissionService

logger = get_logger("server")

CORS_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]


@dataclass
class AppComponents:
    settings: RubricaSettings
    db: Database
    blobs: BlobStore
    ai: AIBackendProtocol
    token_resolver: TokenResolver
    service: ServiceRepository
    rate_limiter: RateLimiter
    criteria_pipeline: CriteriaExtractionPipeline
    grading_pipeline: GradingPipeline
    submissions: SubmissionService


def build_components(
    settings: RubricaSettings | None = None,
    *,
    db: Database | None = None,
    blobs: BlobStore | None = None,
    ai: AIBackendProtocol | None = None,
    token_resolver: TokenResolver | None = None,
) -> AppComponents:
    """Wire the pipelines from settings, letting callers swap any collaborator."""
    settings = settings or get_settings()
    if token_resolver is None:
        if not settings.jwt_secret:
            raise ValueError("RUBRICA_JWT_SECRET must be set")
        token_resolver = JWTTokenResolver(
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            audience=settings.jwt_audience,
        )
    db = db or Database(settings.database_url)
    blobs = blobs or LocalBlobStore(settings.storage_root)
    ai = ai or PydanticAIBackend(settings=settings)
    service = ServiceRepository(db)
    fetcher = FileFetcher(blobs, timeout_s=settings.storage_timeout)
    rate_limiter = RateLimiter(service)
    grading = GradingPipeline(service=service, fetcher=fetcher, ai=ai, settings=settings)
    return AppComponents(
        settings=settings,
        db=db,
        blobs=blobs,
        ai=ai,
        token_resolver=token_resolver,
        service=service,
        rate_limiter=rate_limiter,
        criteria_pipeline=CriteriaExtractionPipeline(
            service=service, fetcher=fetcher, ai=ai, rate_limiter=rate_limiter, settings=settings
        ),
        grading_pipeline=grading,
        submissions=SubmissionService(pipeline=grading, service=service, blobs=blobs),
    )


# ─────────────────────────────────────────────────────────────────────────────
# Dependencies
# ─────────────────────────────────────────────────────────────────────────────

security_scheme = HTTPBearer(auto_error=False)


def get_components(request: Request) -> AppComponents:
    return request.app.state.components


def get_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security_scheme),
    components: AppComponents = Depends(get_components),
) -> UserScopedRepository:
    """Caller-scoped repository for the bearer token's user."""
    if credentials is None or not credentials.credentials:
        raise AuthRequiredError("missing bearer token")
    owner = components.token_resolver.resolve(credentials.credentials)
    return UserScopedRepository(components.db, owner)


# ─────────────────────────────────────────────────────────────────────────────
# Routes
# ─────────────────────────────────────────────────────────────────────────────

router = APIRouter()


@router.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@router.post("/process-rubric")
async def process_rubric(
    body: ExtractCriteriaRequest,
    user: UserScopedRepository = Depends(get_user),
    components: AppComponents = Depends(get_components),
) -> JSONResponse:
    outcome = await components.criteria_pipeline.run(
        user=user, rubric_id=str(body.rubric_id), file_path=body.file_path
    )
    payload = ExtractCriteriaResponse(criteria=outcome.criteria)
    return JSONResponse(payload.model_dump(mode="json"))


@router.post("/grade-submission")
async def grade_submission(
    body: GradeSubmissionRequest,
    user: UserScopedRepository = Depends(get_user),
    components: AppComponents = Depends(get_components),
) -> JSONResponse:
    outcome = await components.grading_pipeline.run(
        user=user,
        submission_id=str(body.submission_id),
        focus_profile_id=str(body.focus_profile_id),
    )
    payload = GradeSubmissionResponse(overall_score=outcome.overall_score)
    return JSONResponse(payload.model_dump(mode="json", by_alias=True))


@router.post("/submissions/{submission_id}/retry", status_code=status.HTTP_202_ACCEPTED)
async def retry_submission(
    submission_id: str,
    body: RetryGradingRequest,
    user: UserScopedRepository = Depends(get_user),
    components: AppComponents = Depends(get_components),
) -> JSONResponse:
    await components.submissions.retry(
        user=user, submission_id=submission_id, focus_profile_id=str(body.focus_profile_id)
    )
    return JSONResponse(
        {"success": True, "status": "pending"}, status_code=status.HTTP_202_ACCEPTED
    )


@router.delete("/submissions/{submission_id}")
async def delete_submission(
    submission_id: str,
    user: UserScopedRepository = Depends(get_user),
    components: AppComponents = Depends(get_components),
) -> JSONResponse:
    await components.submissions.delete(user=user, submission_id=submission_id)
    return JSONResponse({"success": True})


# ─────────────────────────────────────────────────────────────────────────────
# Error rendering
# ─────────────────────────────────────────────────────────────────────────────


def _error_body(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(ErrorResponse(error=message).model_dump(), status_code=status_code)


async def _rubrica_error(request: Request, exc: RubricaError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s: %s", request.method, request.url.path, type(exc).__name__, exc)
    else:
        logger.info("%s %s rejected: %s: %s", request.method, request.url.path, type(exc).__name__, exc)
    return _error_body(exc.public_message, exc.status_code)


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("%s %s: invalid request body: %s", request.method, request.url.path, exc.errors())
    return _error_body(InvalidInputError.public_message, status.HTTP_400_BAD_REQUEST)


async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "%s %s crashed", request.method, request.url.path, exc_info=(type(exc), exc, exc.__traceback__)
    )
    return _error_body(RubricaError.public_message, status.HTTP_500_INTERNAL_SERVER_ERROR)


def create_app(components: AppComponents | None = None) -> FastAPI:
    components = components or build_components()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await components.submissions.drain()

    app = FastAPI(title="Rubrica", lifespan=lifespan)
    app.state.components = components
    app.add_middleware(
        CORSMiddleware,
        allow_origins=components.settings.cors_allow_origins,
        allow_methods=["*"],
        allow_headers=CORS_HEADERS,
    )
    app.add_exception_handler(RubricaError, _rubrica_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_exception_handler(Exception, _unexpected_error)
    app.include_router(router)
    return app
