"""
Retaguarda de blocos - API principal FastAPI
"""

import logging
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backoffice import __version__
from backoffice.core.config import settings
from backoffice.core.erros import ErroRazao
from backoffice.db import init_db
from backoffice.api.routes_blocos import router as blocos_router
from backoffice.api.routes_cheques import router as cheques_router
from backoffice.api.routes_fechamentos import router as fechamentos_router
from backoffice.api.routes_financeiro import router as financeiro_router
from backoffice.api.routes_pagamentos import router as pagamentos_router

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Retaguarda de Blocos",
    description="Blocos de clientes, lançamentos, cheques, financeiro e fechamento do dia",
    version=__version__,
    redirect_slashes=False  # Evita redirect 307 de /blocos para /blocos/
)

# CORS - DEVE estar antes de include_router
cors_origins_str = os.getenv("CORS_ORIGINS") or settings.cors_origins
cors_origins = [origin.strip() for origin in cors_origins_str.split(",") if origin.strip()]
logger.info(f"CORS origins list: {cors_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


@app.exception_handler(ErroRazao)
async def erro_razao_handler(request: Request, exc: ErroRazao):
    """Converte erros de domínio em resposta JSON com categoria estável"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.mensagem}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validacao_handler(request: Request, exc: RequestValidationError):
    erros = exc.errors()
    campo = ".".join(str(parte) for parte in erros[0]["loc"][1:]) if erros else None
    return JSONResponse(
        status_code=422,
        content={
            "categoria": "VALIDACAO",
            "message": "Erro de validação",
            "campo": campo,
            "errors": [{"loc": list(e["loc"]), "msg": e["msg"]} for e in erros],
        },
    )


# Inicializa banco de dados na startup
@app.on_event("startup")
async def on_startup():
    """Inicializa banco de dados na startup"""
    init_db()


# Rotas
app.include_router(blocos_router)
app.include_router(pagamentos_router)
app.include_router(cheques_router)
app.include_router(fechamentos_router)
app.include_router(financeiro_router)


@app.get("/health")
async def health_check():
    """Endpoint de saúde da API"""
    return {
        "status": "ok",
        "service": "Retaguarda de Blocos",
        "version": __version__
    }


@app.get("/")
async def root():
    """Endpoint raiz"""
    return {
        "message": "Retaguarda de Blocos",
        "docs": "/docs",
        "endpoints": {
            "blocos": "/blocos",
            "pagamentos": "/pagamentos",
            "cheques": "/cheques",
            "fechamentos": "/fechamentos/{data_ref}",
            "financeiro": "/financeiro",
            "health": "/health"
        }
    }
