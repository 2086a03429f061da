"""
Rotas FastAPI para cheques (liquidação, devolução e cancelamento)
"""

from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backoffice.api.deps import Usuario, qualquer_perfil, somente_gestao
from backoffice.api.schemas_blocos import LancamentoSchema
from backoffice.core.enums import StatusLancamento
from backoffice.db import get_db
from backoffice.services import cheques

router = APIRouter(prefix="/cheques", tags=["cheques"])


@router.get("/", response_model=List[LancamentoSchema])
def listar_cheques(
    status: Optional[StatusLancamento] = None,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(qualquer_perfil),
):
    """Cheques de todos os blocos, por bom_para."""
    return cheques.listar_cheques(db, status)


@router.post("/{lancamento_id}/liquidar", response_model=LancamentoSchema)
def liquidar_cheque(
    lancamento_id: int,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(somente_gestao),
):
    return cheques.liquidar_cheque(db, lancamento_id)


@router.post("/{lancamento_id}/devolver", response_model=LancamentoSchema)
def devolver_cheque(
    lancamento_id: int,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(somente_gestao),
):
    return cheques.devolver_cheque(db, lancamento_id)


@router.post("/{lancamento_id}/cancelar", response_model=LancamentoSchema)
def cancelar_lancamento(
    lancamento_id: int,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(somente_gestao),
):
    """Cancela um lançamento PENDENTE (qualquer tipo)."""
    return cheques.cancelar_lancamento(db, lancamento_id)
