"""
Rotas FastAPI para blocos, pedidos vinculados e lançamentos do bloco
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from backoffice.api.deps import Usuario, qualquer_perfil, somente_gestao
from backoffice.api.schemas_blocos import (
    BlocoCreate,
    BlocoDetalhe,
    BlocoSchema,
    DesvinculoResposta,
    LancamentoCreate,
    LancamentoSchema,
    PaginaBlocos,
    PaginaLancamentos,
    PaginaPedidos,
    PedidoSchema,
    PedidoVincular,
    SaldoBlocoSchema,
    VinculoPedidoResposta,
)
from backoffice.core.enums import StatusBloco, StatusLancamento
from backoffice.db import get_db
from backoffice.services import blocos, lancamentos
from backoffice.services.saldo import saldo_bloco

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/blocos", tags=["blocos"])


@router.get("/", response_model=PaginaBlocos)
def listar_blocos(
    cliente_id: Optional[int] = None,
    status: Optional[StatusBloco] = None,
    cliente: Optional[str] = None,
    q: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(qualquer_perfil),
):
    """Lista blocos (mais recentes primeiro)."""
    itens, total = blocos.listar_blocos(db, cliente_id, status, cliente, q, page, limit)
    return {"data": itens, "page": page, "limit": limit, "total": total}


@router.post("/", response_model=BlocoSchema, status_code=201)
def criar_bloco(
    dados: BlocoCreate,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(somente_gestao),
):
    """Abre um bloco para o cliente. Sem código, um é gerado."""
    return blocos.abrir_bloco(db, dados.cliente_id, dados.codigo, dados.observacao)


@router.get("/{bloco_id}", response_model=BlocoDetalhe)
def obter_bloco(
    bloco_id: int,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(qualquer_perfil),
):
    bloco = blocos.obter_bloco(db, bloco_id)
    return BlocoDetalhe(
        **BlocoSchema.model_validate(bloco).model_dump(),
        saldo=saldo_bloco(db, bloco_id),
    )


@router.get("/{bloco_id}/saldo", response_model=SaldoBlocoSchema)
def obter_saldo(
    bloco_id: int,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(qualquer_perfil),
):
    return {"bloco_id": bloco_id, "saldo": saldo_bloco(db, bloco_id)}


@router.post("/{bloco_id}/fechar", response_model=BlocoSchema)
def fechar_bloco(
    bloco_id: int,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(somente_gestao),
):
    """Fecha o bloco. Só é permitido com saldo zero."""
    return blocos.fechar_bloco(db, bloco_id)


@router.get("/{bloco_id}/pedidos", response_model=PaginaPedidos)
def listar_pedidos(
    bloco_id: int,
    page: int = 1,
    limit: int = 50,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(qualquer_perfil),
):
    itens, total = blocos.listar_pedidos(db, bloco_id, page, limit)
    return {"data": itens, "page": page, "limit": limit, "total": total}


@router.post("/{bloco_id}/pedidos", response_model=VinculoPedidoResposta, status_code=201)
def vincular_pedido(
    bloco_id: int,
    dados: PedidoVincular,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(qualquer_perfil),
):
    """
    Vincula um pedido ao bloco.

    - Com valor_pedido: gera a SAIDA automática do pedido
    - Pedido já vinculado a qualquer bloco: 409
    """
    vinculo, lancamento = blocos.vincular_pedido(
        db, bloco_id, dados.pedido_id, dados.valor_pedido, usuario.id
    )
    return {
        "pedido": PedidoSchema.model_validate(vinculo),
        "lancamento": LancamentoSchema.model_validate(lancamento) if lancamento else None,
    }


@router.delete("/{bloco_id}/pedidos/{pedido_id}", response_model=DesvinculoResposta)
def desvincular_pedido(
    bloco_id: int,
    pedido_id: int,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(somente_gestao),
):
    estorno = blocos.desvincular_pedido(db, bloco_id, pedido_id, usuario.id)
    return {
        "message": "Pedido desvinculado com sucesso",
        "estorno": LancamentoSchema.model_validate(estorno) if estorno else None,
    }


@router.get("/{bloco_id}/lancamentos", response_model=PaginaLancamentos)
def listar_lancamentos(
    bloco_id: int,
    status: Optional[StatusLancamento] = None,
    tipo: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(qualquer_perfil),
):
    itens, total = lancamentos.listar_lancamentos(db, bloco_id, status, tipo, page, limit)
    return {"data": itens, "page": page, "limit": limit, "total": total}


@router.post("/{bloco_id}/lancamentos", response_model=LancamentoSchema, status_code=201)
def adicionar_lancamento(
    bloco_id: int,
    dados: LancamentoCreate,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(somente_gestao),
):
    return lancamentos.adicionar_lancamento(
        db,
        bloco_id,
        tipo_recebimento=dados.tipo_recebimento,
        valor=dados.valor,
        data_lancamento=dados.data_lancamento,
        bom_para=dados.bom_para,
        tipo_cheque=dados.tipo_cheque,
        numero_referencia=dados.numero_referencia,
        status=dados.status,
        observacao=dados.observacao,
        sentido=dados.sentido,
        usuario_id=usuario.id,
    )


@router.delete("/{bloco_id}/lancamentos/{lancamento_id}", status_code=204)
def excluir_lancamento(
    bloco_id: int,
    lancamento_id: int,
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(somente_gestao),
):
    """Exclui o lançamento. Recusado se o bloco estiver FECHADO ou o lançamento já fechado no dia."""
    lancamentos.excluir_lancamento(db, bloco_id, lancamento_id)
    return Response(status_code=204)
