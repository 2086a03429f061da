"""
Rotas FastAPI para o fechamento do dia
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backoffice.api.deps import Usuario, somente_gestao
from backoffice.api.schemas_blocos import FechamentoCreate, FechamentoDetalhe
from backoffice.db import get_db
from backoffice.services import fechamentos

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/fechamentos", tags=["fechamentos"])


@router.get("/{data_ref}", response_model=FechamentoDetalhe)
def obter_fechamento(
    data_ref: str,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(somente_gestao),
):
    """Cabeçalho, itens e resumo do fechamento (data no formato YYYY-MM-DD)."""
    return fechamentos.obter_fechamento(db, data_ref)


@router.post("/{data_ref}", status_code=201)
def criar_fechamento(
    data_ref: str,
    dados: Optional[FechamentoCreate] = None,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(somente_gestao),
):
    """
    Cria o fechamento do dia.

    - Já existe fechamento para a data: 409
    - Outra operação segurando o lock: 409 com retentavel=true
    """
    fechamento = fechamentos.criar_fechamento(
        db, data_ref, usuario.id, dados.observacao if dados else None
    )
    return {"message": f"Fechamento para o dia {fechamento.data_ref} criado com sucesso."}


@router.post("/{data_ref}/reprocess")
def reprocessar_fechamento(
    data_ref: str,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(somente_gestao),
):
    fechamento = fechamentos.reprocessar_fechamento(db, data_ref)
    return {"message": f"Fechamento para o dia {fechamento.data_ref} reprocessado com sucesso."}
