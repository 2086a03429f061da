"""
Rotas FastAPI do financeiro: títulos a receber, baixas e conferência do dia
"""

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from backoffice.api.deps import Usuario, somente_gestao
from backoffice.api.schemas_financeiro import (
    BaixaCreate,
    BaixaResposta,
    BaixaSchema,
    ConferenciaSchema,
    PaginaTitulos,
    SaldoTitulosSchema,
    TituloCreate,
    TituloSchema,
    TituloUpdate,
)
from backoffice.core.enums import StatusTitulo, STATUS_TITULO_EM_ABERTO
from backoffice.db import get_db
from backoffice.services import financeiro

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/financeiro", tags=["financeiro"])


@router.get("/titulos", response_model=PaginaTitulos)
def listar_titulos(
    status: Optional[List[StatusTitulo]] = Query(None),
    todos: bool = False,
    tipo: Optional[str] = None,
    cliente_id: Optional[int] = None,
    de: Optional[date] = None,
    ate: Optional[date] = None,
    q: Optional[str] = None,
    page: int = 1,
    page_size: int = 25,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(somente_gestao),
):
    """
    Lista títulos por vencimento.

    - Sem status: ABERTO e PARCIAL
    - todos=true: qualquer status (ignora o filtro de status)
    """
    if todos:
        filtro_status = None
    else:
        filtro_status = status or STATUS_TITULO_EM_ABERTO
    itens, total = financeiro.listar_titulos(
        db,
        status=filtro_status,
        tipo=tipo,
        cliente_id=cliente_id,
        de=de,
        ate=ate,
        q=q,
        page=page,
        page_size=page_size,
    )
    return {"data": itens, "page": page, "page_size": page_size, "total": total}


@router.post("/titulos", response_model=TituloSchema, status_code=201)
def criar_titulo(
    dados: TituloCreate,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(somente_gestao),
):
    return financeiro.criar_titulo(db, **dados.model_dump(), usuario_id=usuario.id)


@router.get("/titulos/{titulo_id}", response_model=TituloSchema)
def obter_titulo(
    titulo_id: int,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(somente_gestao),
):
    return financeiro.obter_titulo(db, titulo_id)


@router.put("/titulos/{titulo_id}", response_model=TituloSchema)
def atualizar_titulo(
    titulo_id: int,
    dados: TituloUpdate,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(somente_gestao),
):
    patch = financeiro.TituloPatch(**dados.model_dump())
    return financeiro.atualizar_titulo(db, titulo_id, patch)


@router.delete("/titulos/{titulo_id}", response_model=TituloSchema)
def cancelar_titulo(
    titulo_id: int,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(somente_gestao),
):
    """Exclusão lógica (status CANCELADO)."""
    return financeiro.cancelar_titulo(db, titulo_id)


@router.get("/titulos/{titulo_id}/baixas", response_model=List[BaixaSchema])
def listar_baixas(
    titulo_id: int,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(somente_gestao),
):
    return financeiro.listar_baixas(db, titulo_id)


@router.post("/titulos/{titulo_id}/baixas", response_model=BaixaResposta, status_code=201)
def registrar_baixa(
    titulo_id: int,
    dados: BaixaCreate,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(somente_gestao),
):
    """
    Registra baixa total ou parcial.

    Quando o título fica BAIXADO o lançamento de origem vai para
    LIQUIDADO_FINANCEIRO.
    """
    titulo, baixa, lancamento = financeiro.registrar_baixa(
        db,
        titulo_id,
        dados.valor_baixa,
        data_baixa=dados.data_baixa,
        forma_pagto=dados.forma_pagto,
        obs=dados.obs,
        usuario_id=usuario.id,
    )
    return {
        "titulo": TituloSchema.model_validate(titulo),
        "baixa": BaixaSchema.model_validate(baixa),
        "lancamento_id": lancamento.id if lancamento else None,
        "lancamento_status": lancamento.status if lancamento else None,
    }


@router.get("/clientes/{cliente_id}/saldo", response_model=SaldoTitulosSchema)
def saldo_cliente(
    cliente_id: int,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(somente_gestao),
):
    """Contas a receber do cliente."""
    return {"cliente_id": cliente_id, "saldo": financeiro.saldo_em_aberto(db, cliente_id)}


@router.get("/conferencia", response_model=ConferenciaSchema)
def conferencia_diaria(
    data: Optional[date] = None,
    operador_id: Optional[int] = None,
    cliente_id: Optional[int] = None,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(somente_gestao),
):
    return financeiro.conferencia_diaria(db, data, operador_id, cliente_id)
