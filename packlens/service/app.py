"""FastAPI application exposing the result cache as a long-running daemon."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, Optional

try:  # pragma: no cover - optional dependency
    from fastapi import FastAPI
    from fastapi.responses import JSONResponse
    from pydantic import BaseModel

    _FASTAPI_AVAILABLE = True
except ModuleNotFoundError:  # pragma: no cover - service mode optional
    FastAPI = None  # type: ignore[assignment]
    JSONResponse = None  # type: ignore[assignment]
    BaseModel = object  # type: ignore[assignment]
    _FASTAPI_AVAILABLE = False

from ..analysis import AnalysisKind
from ..config import load_config
from ..daemon import ResultCache
from ..errors import OptionError, ParseError, StoreError
from ..models import AnalysisOptions, AnalysisRequest


class AnalyzeRequest(BaseModel):
    code: str = ""
    manifest: Optional[Dict[str, Any]] = None
    minified: bool = False
    gzip: bool = False
    format: str = "object"


class HealthResponse(BaseModel):
    status: str


def _default_cache() -> ResultCache:
    return ResultCache.create(load_config("."))


def create_app(
    cache_factory: Callable[[], ResultCache] = _default_cache,
) -> FastAPI:
    """Create the FastAPI application serving cached bundle analyses."""

    if not _FASTAPI_AVAILABLE:  # pragma: no cover - validated via unit tests
        raise RuntimeError(
            "FastAPI is required for service mode. Install it with `pip install packlens[service]`."
        )

    # One cache per app so concurrent requests coalesce on the same in-flight map.
    cache = cache_factory()

    @asynccontextmanager
    async def lifespan(_: Any) -> AsyncIterator[None]:
        yield
        cache.close()

    app = FastAPI(title="packlens", version="1.0.0", lifespan=lifespan)
    app.state.cache = cache

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    def _register(kind: AnalysisKind) -> None:
        async def run_analysis(payload: AnalyzeRequest) -> Dict[str, Any]:
            request = AnalysisRequest(
                code=payload.code,
                manifest=payload.manifest,
                options=AnalysisOptions(
                    format=payload.format,
                    minified=payload.minified,
                    gzip=payload.gzip,
                ),
            )
            result = await cache.analyze(kind, request)
            return result.to_dict()

        app.post(f"/{kind.value}", name=kind.value)(run_analysis)

    for kind in AnalysisKind:
        _register(kind)

    @app.exception_handler(ParseError)
    async def parse_error_handler(_: Any, exc: ParseError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"error": "parse", "detail": exc.message, "position": exc.position},
        )

    @app.exception_handler(OptionError)
    async def option_error_handler(_: Any, exc: OptionError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"error": "option", "detail": str(exc)})

    @app.exception_handler(StoreError)
    async def store_error_handler(_: Any, exc: StoreError) -> JSONResponse:
        return JSONResponse(status_code=503, content={"error": "store", "detail": str(exc)})

    return app


def run_service(
    host: str | None = None, port: int | None = None
) -> None:  # pragma: no cover - integration path
    if not _FASTAPI_AVAILABLE:
        raise RuntimeError(
            "FastAPI is required for service mode. Install it with `pip install packlens[service]`."
        )

    try:
        import uvicorn
    except ModuleNotFoundError as exc:  # pragma: no cover - optional dependency
        raise RuntimeError(
            "uvicorn is required to run the service. Install it with `pip install uvicorn`."
        ) from exc

    config = load_config(".")
    app = create_app(lambda: ResultCache.create(config))
    uvicorn.run(app, host=host or config.service.host, port=port or config.service.port)
