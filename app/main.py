import logging
import traceback
import uuid

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.router import api_router
from app.core.config import get_settings
from app.core.errors import DomainError, ErrorKind
from app.core.logging import configure_logging

logger = logging.getLogger("agriis.errors")


def _error_body(kind: ErrorKind, description: str) -> dict:
    return {"error_code": kind.value, "error_description": description}


def _describe_validation(exc: RequestValidationError) -> str:
    partes = []
    for err in exc.errors():
        campo = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        partes.append(f"{campo}: {err.get('msg')}" if campo else str(err.get("msg")))
    return "; ".join(partes) or "Requisição inválida."


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version="0.1.0",
        debug=settings.DEBUG,
        description="Carrinho, negociação e agendamento de frete de pedidos de insumos agrícolas.",
    )

    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError):
        if exc.status_code >= 500:
            logger.error("%s %s -> %s", request.method, request.url.path, exc)
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        body = _error_body(ErrorKind.validation_error, _describe_validation(exc))
        return JSONResponse(jsonable_encoder(body), status_code=422)

    # Erro inesperado: loga com id curto e devolve INTERNAL_ERROR
    @app.middleware("http")
    async def errors_with_id(request: Request, call_next):
        try:
            resp = await call_next(request)
        except Exception:
            err_id = uuid.uuid4().hex[:8]
            logger.error(
                "EXC %s: %s %s?%s\n%s",
                err_id, request.method, request.url.path, request.url.query,
                traceback.format_exc()
            )
            body = _error_body(ErrorKind.internal_error, f"Erro interno (id {err_id}).")
            resp = JSONResponse(body, status_code=500)
            resp.headers["x-error-id"] = err_id
            return resp
        if resp.status_code >= 500:
            logger.error(
                "5xx: %s %s?%s -> %s",
                request.method, request.url.path, request.url.query, resp.status_code
            )
        return resp

    # API
    app.include_router(api_router, prefix="/api")

    # Health-check para infra
    @app.get("/healthz", tags=["health"])
    async def healthz():
        return {
            "status": "ok",
            "env": settings.ENV,
            "version": "0.1.0",
        }

    return app


app = create_app()
