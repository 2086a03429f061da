"""
Cálculo de saldos do razão.

Convenção do saldo de bloco: SAIDA soma, ENTRADA subtrai, lançamentos
CANCELADOS ficam de fora. Nada é guardado em coluna: todo saldo é recalculado
a partir dos lançamentos a cada chamada.
"""

import logging
from decimal import Decimal
from typing import Any

from sqlalchemy import Numeric, and_, case, exists, func, or_
from sqlalchemy.orm import Session

from backoffice.core.config import settings
from backoffice.core.enums import (
    Sentido, StatusBloco, StatusLancamento, StatusTitulo, STATUS_TITULO_EM_ABERTO
)
from backoffice.core.erros import ErroNaoEncontrado
from backoffice.models.bloco import Bloco
from backoffice.models.financeiro import FinanceiroTitulo
from backoffice.models.lancamento import BlocoLancamento
from backoffice.services.clientes import obter_cliente

logger = logging.getLogger(__name__)

CENTAVOS = Decimal("0.01")
ZERO = Decimal("0.00")

# Lançamentos com vencimento que ainda representam dinheiro a receber
STATUS_A_RECEBER = (StatusLancamento.PENDENTE, StatusLancamento.DEVOLVIDO)


def para_decimal(valor: Any) -> Decimal:
    """Normaliza o retorno de SUM (float no SQLite, Decimal no Postgres) para centavos"""
    if valor is None:
        return ZERO
    if not isinstance(valor, Decimal):
        valor = Decimal(str(valor))
    return valor.quantize(CENTAVOS)


def _valor_com_sinal():
    return case(
        (BlocoLancamento.sentido == Sentido.SAIDA, BlocoLancamento.valor),
        else_=-BlocoLancamento.valor,
    )


def calcular_saldo(db: Session, bloco_id: int) -> Decimal:
    """Saldo de um bloco sem checar existência (usado dentro de transações)"""
    total = (
        db.query(func.sum(_valor_com_sinal()))
        .filter(
            BlocoLancamento.bloco_id == bloco_id,
            BlocoLancamento.status != StatusLancamento.CANCELADO,
        )
        .scalar()
    )
    return para_decimal(total)


def saldo_bloco(db: Session, bloco_id: int) -> Decimal:
    """
    Saldo corrente do bloco.

    Raises:
        ErroNaoEncontrado: bloco inexistente
    """
    if db.get(Bloco, bloco_id) is None:
        raise ErroNaoEncontrado("Bloco não encontrado")
    return calcular_saldo(db, bloco_id)


def saldo_blocos_abertos(db: Session, cliente_id: int) -> Decimal:
    """Soma dos saldos de todos os blocos ABERTOS do cliente"""
    obter_cliente(db, cliente_id)
    total = (
        db.query(func.sum(_valor_com_sinal()))
        .join(Bloco, Bloco.id == BlocoLancamento.bloco_id)
        .filter(
            Bloco.cliente_id == cliente_id,
            Bloco.status == StatusBloco.ABERTO,
            BlocoLancamento.status != StatusLancamento.CANCELADO,
        )
        .scalar()
    )
    return para_decimal(total)


def titulos_em_aberto(db: Session, cliente_id: int) -> Decimal:
    """Soma de valor_bruto - valor_baixado dos títulos ABERTO/PARCIAL do cliente"""
    obter_cliente(db, cliente_id)
    total = (
        db.query(func.sum(FinanceiroTitulo.valor_bruto - FinanceiroTitulo.valor_baixado))
        .filter(
            FinanceiroTitulo.cliente_id == cliente_id,
            FinanceiroTitulo.status.in_(STATUS_TITULO_EM_ABERTO),
        )
        .scalar()
    )
    return para_decimal(total)


def _representado_por_titulo():
    """
    Lançamento já coberto por um título não cancelado: vínculo explícito por
    lancamento_id ou título só com bloco_id que a conciliação casaria com ele
    (mesmo bloco, tipo, dia de bom_para e valor dentro da tolerância).
    """
    vinculo_explicito = exists().where(
        and_(
            FinanceiroTitulo.lancamento_id == BlocoLancamento.id,
            FinanceiroTitulo.status != StatusTitulo.CANCELADO,
        )
    )
    diferenca = func.abs(
        FinanceiroTitulo.valor_bruto - BlocoLancamento.valor, type_=Numeric(18, 2)
    )
    titulo_do_bloco = exists().where(
        and_(
            FinanceiroTitulo.lancamento_id.is_(None),
            FinanceiroTitulo.status != StatusTitulo.CANCELADO,
            FinanceiroTitulo.bloco_id == BlocoLancamento.bloco_id,
            FinanceiroTitulo.tipo == BlocoLancamento.tipo_recebimento,
            func.date(BlocoLancamento.bom_para) == FinanceiroTitulo.bom_para,
            diferenca <= settings.tolerancia_conciliacao,
        )
    )
    return or_(vinculo_explicito, titulo_do_bloco)


def contas_a_receber(db: Session, cliente_id: int) -> Decimal:
    """
    Valor em aberto do cliente, em todos os blocos (abertos ou fechados).

    Soma:
    - títulos ABERTO/PARCIAL: valor_bruto - valor_baixado
    - lançamentos de ENTRADA com vencimento ainda não liquidados nem cancelados
      que nenhum título represente (senão contariam duas vezes)
    """
    em_titulos = titulos_em_aberto(db, cliente_id)

    em_lancamentos = (
        db.query(func.sum(BlocoLancamento.valor))
        .join(Bloco, Bloco.id == BlocoLancamento.bloco_id)
        .filter(
            Bloco.cliente_id == cliente_id,
            BlocoLancamento.bom_para.isnot(None),
            BlocoLancamento.sentido == Sentido.ENTRADA,
            BlocoLancamento.status.in_(STATUS_A_RECEBER),
            ~_representado_por_titulo(),
        )
        .scalar()
    )

    return em_titulos + para_decimal(em_lancamentos)


def exposicao_financeira(db: Session, cliente_id: int) -> Decimal:
    """max(0, -saldo dos blocos abertos) + contas a receber"""
    saldo = saldo_blocos_abertos(db, cliente_id)
    receber = contas_a_receber(db, cliente_id)
    exposicao = max(ZERO, -saldo) + receber
    logger.debug(
        f"Exposição do cliente {cliente_id}: saldo={saldo} receber={receber} total={exposicao}"
    )
    return exposicao
