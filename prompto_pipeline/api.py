"""
Prompto — Read API
====================
    GET  /health
    GET  /getCategory
    POST /getCategoryList     body {"id": "<categoryId>"}, query ?page=&limit=
    POST /getPromptDetails    body {"_id": "<promptId>"}

Every route except /health needs the shared secret in `x-api-key`.
Responses are JSON with a `success` flag; failures carry a `message`
and never internal error detail.
"""
import logging
import os
import secrets
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from .cache import CachedValue
from .config import Config, setup_logging
from .errors import Forbidden, MalformedInput, PipelineError
from .read_backends import FirestoreBackend, StorageBackend, clamp_page_params

log = logging.getLogger("prompto.api")


class CategoryListRequest(BaseModel):
    id: Any = None


class PromptDetailRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt_id: Any = Field(None, alias="_id")


def _required_string(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value:
        raise MalformedInput(f"Missing or invalid '{field_name}' parameter")
    return value


def _fail(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


# ── Dependencies ─────────────────────────────────────────────────────────────

def require_api_key(request: Request, x_api_key: Optional[str] = Header(None)) -> None:
    expected = request.app.state.api_key
    if not x_api_key or not expected or not secrets.compare_digest(x_api_key, expected):
        log.warning("API key validation failed - Forbidden request")
        raise Forbidden("Forbidden — Invalid or missing API key")


def _build_backend(app: FastAPI):
    from .clients import firestore_client, load_credentials, storage_bucket
    from .storage_reader import StorageReader

    credentials = load_credentials()
    if Config.API_BACKEND == "storage":
        log.info("Read API backend: storage (live JSON reads)")
        return StorageBackend(StorageReader(storage_bucket(credentials)), app.state.category_cache)
    log.info("Read API backend: firestore")
    return FirestoreBackend(firestore_client(credentials))


def get_backend(request: Request):
    app = request.app
    if app.state.backend is None:
        try:
            app.state.backend = _build_backend(app)
        except Exception:
            log.exception("Could not initialise the read API backend")
            raise PipelineError("Service unavailable")
    return app.state.backend


# ── Routes ───────────────────────────────────────────────────────────────────

router = APIRouter(dependencies=[Depends(require_api_key)])


@router.get("/getCategory")
def get_category(backend=Depends(get_backend)) -> dict[str, Any]:
    try:
        data = backend.list_categories()
    except PipelineError:
        raise
    except Exception:
        log.exception("Error fetching categories")
        raise PipelineError("Error fetching categories")

    return {"success": True, "message": "Category list fetched successfully", "data": data}


@router.post("/getCategoryList")
def get_category_list(
    payload: Optional[CategoryListRequest] = Body(None),
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    backend=Depends(get_backend),
) -> dict[str, Any]:
    category_id = _required_string(payload.id if payload else None, "id")
    page_num, page_size = clamp_page_params(page, limit)

    try:
        result = backend.list_prompts(category_id, page_num, page_size)
    except PipelineError:
        raise
    except Exception:
        log.exception("Error fetching category list")
        raise PipelineError("Error fetching category list")

    return {"success": True, "message": "Category data fetched successfully", **result.to_dict()}


@router.post("/getPromptDetails")
def get_prompt_details(
    payload: Optional[PromptDetailRequest] = Body(None),
    backend=Depends(get_backend),
) -> dict[str, Any]:
    prompt_id = _required_string(payload.prompt_id if payload else None, "_id")

    try:
        data = backend.get_prompt_detail(prompt_id)
    except PipelineError:
        raise
    except Exception:
        log.exception("Error fetching prompt details")
        raise PipelineError("Error fetching prompt details")

    return {"success": True, "message": "Prompt details fetched successfully", "data": data}


def create_app(backend=None, api_key: Optional[str] = None) -> FastAPI:
    app = FastAPI(title="Prompto API", description="Read API over migrated prompt data")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.api_key = api_key if api_key is not None else Config.API_KEY
    app.state.category_cache = CachedValue(ttl_seconds=Config.CATEGORY_CACHE_TTL_SECONDS)
    app.state.backend = backend

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "success": True,
            "message": "API is running",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    app.include_router(router)

    @app.exception_handler(PipelineError)
    async def pipeline_error_handler(request: Request, exc: PipelineError):
        return _fail(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _fail(400, "Invalid request body")

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code in (404, 405):
            return _fail(404, f"Route {request.method} {request.url.path} not found")
        return _fail(exc.status_code, str(exc.detail))

    if not app.state.api_key:
        log.warning("PROMPTO_API_KEY is not set — every protected route will answer 403")
    return app


def run() -> None:
    import uvicorn

    setup_logging()
    uvicorn.run(create_app(), host="0.0.0.0", port=int(os.getenv("PORT", "8080")))


if __name__ == "__main__":
    run()
