"""
Rotas FastAPI para entrada de pagamentos e posição do cliente
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from backoffice.api.deps import Usuario, qualquer_perfil
from backoffice.api.schemas_blocos import (
    ExposicaoSchema,
    LancamentoSchema,
    LancamentoUpdate,
    PagamentoCreate,
    SaldoClienteSchema,
)
from backoffice.db import get_db
from backoffice.services import lancamentos, saldo
from backoffice.services.lancamentos import LancamentoPatch

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pagamentos", tags=["pagamentos"])


# Rotas por cliente (antes das genéricas)
@router.get("/{cliente_id}/saldo", response_model=SaldoClienteSchema)
def saldo_cliente(
    cliente_id: int,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(qualquer_perfil),
):
    """Saldo somado dos blocos ABERTOS do cliente."""
    return {"cliente_id": cliente_id, "saldo": saldo.saldo_blocos_abertos(db, cliente_id)}


@router.get("/{cliente_id}/exposicao", response_model=ExposicaoSchema)
def exposicao_cliente(
    cliente_id: int,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(qualquer_perfil),
):
    saldo_abertos = saldo.saldo_blocos_abertos(db, cliente_id)
    receber = saldo.contas_a_receber(db, cliente_id)
    return {
        "cliente_id": cliente_id,
        "saldo_blocos_abertos": saldo_abertos,
        "contas_a_receber": receber,
        "exposicao": saldo.exposicao_financeira(db, cliente_id),
    }


@router.get("/{cliente_id}/historico", response_model=List[LancamentoSchema])
def historico_cliente(
    cliente_id: int,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(qualquer_perfil),
):
    return lancamentos.historico_cliente(db, cliente_id)


@router.post("/", response_model=LancamentoSchema, status_code=201)
def registrar_pagamento(
    dados: PagamentoCreate,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(qualquer_perfil),
):
    """
    Registra um pagamento do cliente.

    - bloco_id informado: precisa estar ABERTO e ser do cliente
    - sem bloco_id: usa o bloco ABERTO mais recente ou abre um
    """
    return lancamentos.registrar_pagamento(
        db,
        cliente_id=dados.cliente_id,
        forma_pagamento=dados.forma_pagamento,
        valor=dados.valor,
        data_lancamento=dados.data_lancamento,
        data_vencimento=dados.data_vencimento,
        tipo_cheque=dados.tipo_cheque,
        numero_referencia=dados.numero_referencia,
        observacoes=dados.observacoes,
        bloco_id=dados.bloco_id,
        usuario_id=usuario.id,
    )


@router.get("/{lancamento_id}", response_model=LancamentoSchema)
def obter_pagamento(
    lancamento_id: int,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(qualquer_perfil),
):
    return lancamentos.obter_lancamento(db, lancamento_id)


@router.put("/{lancamento_id}", response_model=LancamentoSchema)
def atualizar_pagamento(
    lancamento_id: int,
    dados: LancamentoUpdate,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(qualquer_perfil),
):
    patch = LancamentoPatch(**dados.model_dump())
    return lancamentos.atualizar_lancamento(db, lancamento_id, patch)


@router.delete("/{lancamento_id}", status_code=204)
def excluir_pagamento(
    lancamento_id: int,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(qualquer_perfil),
):
    lancamento = lancamentos.obter_lancamento(db, lancamento_id)
    lancamentos.excluir_lancamento(db, lancamento.bloco_id, lancamento_id)
    return Response(status_code=204)
