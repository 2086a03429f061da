"""
Ciclo de vida de cheques e recebíveis.

PENDENTE -> LIQUIDADO | DEVOLVIDO | CANCELADO (terminais)
PENDENTE | LIQUIDADO -> LIQUIDADO_FINANCEIRO (título quitado no financeiro)

Repetir uma transição já feita é conflito, não no-op.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from backoffice.core.enums import StatusLancamento, TipoRecebimento, transicao_permitida
from backoffice.core.erros import ErroConflito, ErroNaoEncontrado
from backoffice.db import transacao
from backoffice.models.lancamento import BlocoLancamento
from backoffice.services.blocos import exigir_aberto, travar_bloco

logger = logging.getLogger(__name__)

MENSAGENS_CONFLITO = {
    StatusLancamento.LIQUIDADO: "Lançamento já liquidado",
    StatusLancamento.DEVOLVIDO: "Lançamento já devolvido",
    StatusLancamento.CANCELADO: "Lançamento cancelado",
    StatusLancamento.LIQUIDADO_FINANCEIRO: "Lançamento já liquidado no financeiro",
}


def _exigir_transicao(lancamento: BlocoLancamento, novo: StatusLancamento):
    if not transicao_permitida(lancamento.status, novo):
        logger.warning(
            f"Transição recusada no lançamento {lancamento.id}: "
            f"{lancamento.status.value} -> {novo.value}"
        )
        raise ErroConflito(
            MENSAGENS_CONFLITO.get(lancamento.status, "Transição de status não permitida")
        )


def _transicionar_cheque(
    db: Session,
    lancamento_id: int,
    novo: StatusLancamento,
    operacao: str,
) -> BlocoLancamento:
    with transacao(db, operacao, lancamento_id=lancamento_id):
        cheque = (
            db.query(BlocoLancamento)
            .filter(
                BlocoLancamento.id == lancamento_id,
                BlocoLancamento.tipo_recebimento == TipoRecebimento.CHEQUE.value,
            )
            .with_for_update()
            .first()
        )
        if cheque is None:
            raise ErroNaoEncontrado("Lançamento de cheque não encontrado")

        _exigir_transicao(cheque, novo)
        cheque.status = novo
        db.flush()

    logger.info(f"Cheque {lancamento_id} -> {novo.value}")
    return cheque


def liquidar_cheque(db: Session, lancamento_id: int) -> BlocoLancamento:
    """
    Marca o cheque como LIQUIDADO.

    Raises:
        ErroNaoEncontrado: lançamento inexistente ou não é CHEQUE
        ErroConflito: cheque já liquidado, devolvido ou cancelado
    """
    return _transicionar_cheque(db, lancamento_id, StatusLancamento.LIQUIDADO, "liquidar_cheque")


def devolver_cheque(db: Session, lancamento_id: int) -> BlocoLancamento:
    """Marca o cheque como DEVOLVIDO. Mesmas regras de liquidar_cheque."""
    return _transicionar_cheque(db, lancamento_id, StatusLancamento.DEVOLVIDO, "devolver_cheque")


def cancelar_lancamento(db: Session, lancamento_id: int) -> BlocoLancamento:
    """
    Cancela um lançamento PENDENTE de qualquer tipo. O bloco precisa estar
    ABERTO, já que o cancelamento muda o saldo.
    """
    with transacao(db, "cancelar_lancamento", lancamento_id=lancamento_id):
        lancamento = db.get(BlocoLancamento, lancamento_id)
        if lancamento is None:
            raise ErroNaoEncontrado("Lançamento não encontrado")
        bloco = travar_bloco(db, lancamento.bloco_id)
        exigir_aberto(bloco, "Não é possível cancelar lançamento de bloco FECHADO")
        db.refresh(lancamento, with_for_update=True)

        _exigir_transicao(lancamento, StatusLancamento.CANCELADO)
        lancamento.status = StatusLancamento.CANCELADO
        db.flush()

    logger.info(f"Lançamento {lancamento_id} cancelado")
    return lancamento


def liquidar_no_financeiro(lancamento: BlocoLancamento) -> bool:
    """
    Marca LIQUIDADO_FINANCEIRO quando o título ligado ao lançamento é quitado.
    Roda dentro da transação da baixa; devolve False se o status não permite.
    """
    if not transicao_permitida(lancamento.status, StatusLancamento.LIQUIDADO_FINANCEIRO):
        logger.warning(
            f"Lançamento {lancamento.id} em {lancamento.status.value} não pode ir para "
            f"LIQUIDADO_FINANCEIRO"
        )
        return False
    lancamento.status = StatusLancamento.LIQUIDADO_FINANCEIRO
    return True


def listar_cheques(
    db: Session,
    status: Optional[StatusLancamento] = None,
) -> List[BlocoLancamento]:
    """Cheques de todos os blocos, por data de bom_para"""
    query = db.query(BlocoLancamento).filter(
        BlocoLancamento.tipo_recebimento == TipoRecebimento.CHEQUE.value
    )
    if status:
        query = query.filter(BlocoLancamento.status == status)
    return query.order_by(BlocoLancamento.bom_para.asc(), BlocoLancamento.id.asc()).all()
