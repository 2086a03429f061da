"""
Títulos a receber e baixas.

Quando um título é quitado, o lançamento de origem no razão passa para
LIQUIDADO_FINANCEIRO. Se o título não aponta o lançamento explicitamente, a
busca é aproximada: mesmo bloco, ENTRADA, mesmo tipo, valor dentro da
tolerância e mesmo bom_para; havendo empate vence o criado mais recentemente.
Pode escolher o lançamento errado quando há vários iguais.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, fields
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from backoffice.core.catalogo import catalogo
from backoffice.core.config import settings
from backoffice.core.enums import (
    Sentido, StatusLancamento, StatusTitulo, STATUS_TITULO_EM_ABERTO
)
from backoffice.core.erros import (
    ErroConflito, ErroEstadoInvalido, ErroNaoEncontrado, ErroValidacao
)
from backoffice.db import transacao
from backoffice.models.bloco import Bloco
from backoffice.models.financeiro import FinanceiroBaixa, FinanceiroTitulo
from backoffice.models.lancamento import BlocoLancamento
from backoffice.services.cheques import liquidar_no_financeiro
from backoffice.services.clientes import obter_cliente
from backoffice.services.fechamentos import como_data
from backoffice.services.paginacao import paginar
from backoffice.services.saldo import CENTAVOS, ZERO, para_decimal, titulos_em_aberto

logger = logging.getLogger(__name__)

STATUS_SEM_BAIXA = (StatusTitulo.DEVOLVIDO, StatusTitulo.CANCELADO, StatusTitulo.BAIXADO)


@dataclass
class TituloPatch:
    """Campos alteráveis de um título. None = manter o valor atual."""

    numero_doc: Optional[str] = None
    banco: Optional[str] = None
    agencia: Optional[str] = None
    conta: Optional[str] = None
    bom_para: Optional[date] = None
    observacao: Optional[str] = None


def proximo_status(valor_bruto: Decimal, valor_baixado: Decimal, atual: StatusTitulo) -> StatusTitulo:
    """Status do título depois de uma baixa"""
    if atual in (StatusTitulo.DEVOLVIDO, StatusTitulo.CANCELADO):
        return atual
    if valor_baixado <= 0:
        return StatusTitulo.ABERTO
    if valor_baixado >= valor_bruto:
        return StatusTitulo.BAIXADO
    return StatusTitulo.PARCIAL


def _valor_positivo(valor: Any, campo: str) -> Decimal:
    try:
        convertido = Decimal(str(valor)).quantize(CENTAVOS)
    except (ArithmeticError, ValueError, TypeError):
        raise ErroValidacao(campo, f"{campo} inválido: {valor!r}")
    if convertido <= 0:
        raise ErroValidacao(campo, f"{campo} deve ser positivo")
    return convertido


def criar_titulo(
    db: Session,
    cliente_id: int,
    tipo: str,
    bom_para: Any,
    valor_bruto: Any,
    numero_doc: Optional[str] = None,
    banco: Optional[str] = None,
    agencia: Optional[str] = None,
    conta: Optional[str] = None,
    bloco_id: Optional[int] = None,
    lancamento_id: Optional[int] = None,
    observacao: Optional[str] = None,
    usuario_id: Optional[int] = None,
) -> FinanceiroTitulo:
    """
    Cria um título a receber ABERTO.

    Raises:
        ErroValidacao: tipo desconhecido, valor não positivo, bloco/lançamento de outro cliente
        ErroNaoEncontrado: cliente, bloco ou lançamento inexistente
        ErroConflito: lançamento já representado por outro título
    """
    regra = catalogo.regra(tipo)
    valor = _valor_positivo(valor_bruto, "valor_bruto")
    vencimento = como_data(bom_para, "bom_para")

    with transacao(db, "criar_titulo", cliente_id=cliente_id, lancamento_id=lancamento_id):
        obter_cliente(db, cliente_id)

        if lancamento_id:
            lancamento = db.get(BlocoLancamento, lancamento_id)
            if lancamento is None:
                raise ErroNaoEncontrado("Lançamento não encontrado")
            if lancamento.bloco.cliente_id != cliente_id:
                raise ErroValidacao("lancamento_id", "Lançamento pertence a outro cliente")
            if bloco_id and bloco_id != lancamento.bloco_id:
                raise ErroValidacao("bloco_id", "Lançamento pertence a outro bloco")
            bloco_id = lancamento.bloco_id

            outro = (
                db.query(FinanceiroTitulo.id)
                .filter(
                    FinanceiroTitulo.lancamento_id == lancamento_id,
                    FinanceiroTitulo.status != StatusTitulo.CANCELADO,
                )
                .first()
            )
            if outro:
                raise ErroConflito("Lançamento já possui título financeiro")
        elif bloco_id:
            bloco = db.get(Bloco, bloco_id)
            if bloco is None:
                raise ErroNaoEncontrado("Bloco não encontrado")
            if bloco.cliente_id != cliente_id:
                raise ErroValidacao("bloco_id", "Bloco pertence a outro cliente")

        titulo = FinanceiroTitulo(
            cliente_id=cliente_id,
            tipo=regra.tipo,
            numero_doc=numero_doc,
            banco=banco,
            agencia=agencia,
            conta=conta,
            bom_para=vencimento,
            valor_bruto=valor,
            valor_baixado=ZERO,
            status=StatusTitulo.ABERTO,
            observacao=observacao,
            bloco_id=bloco_id,
            lancamento_id=lancamento_id,
            created_by=usuario_id,
        )
        db.add(titulo)
        db.flush()

    logger.info(f"Título {titulo.id} criado: cliente={cliente_id}, {regra.tipo} {valor}")
    return titulo


def obter_titulo(db: Session, titulo_id: int) -> FinanceiroTitulo:
    titulo = db.get(FinanceiroTitulo, titulo_id)
    if titulo is None:
        raise ErroNaoEncontrado("Título não encontrado")
    return titulo


def listar_titulos(
    db: Session,
    status: Optional[Iterable[StatusTitulo]] = STATUS_TITULO_EM_ABERTO,
    tipo: Optional[str] = None,
    cliente_id: Optional[int] = None,
    de: Optional[date] = None,
    ate: Optional[date] = None,
    q: Optional[str] = None,
    page: int = 1,
    page_size: int = 25,
) -> Tuple[List[FinanceiroTitulo], int]:
    """
    Lista títulos por vencimento.

    Args:
        status: Conjunto de status (None = todos)
        de / ate: Intervalo de bom_para
        q: Trecho do número do documento ou da observação
    """
    query = db.query(FinanceiroTitulo)

    if status is not None:
        query = query.filter(FinanceiroTitulo.status.in_(list(status)))
    if tipo:
        query = query.filter(FinanceiroTitulo.tipo == catalogo.regra(tipo).tipo)
    if cliente_id:
        query = query.filter(FinanceiroTitulo.cliente_id == cliente_id)
    if de:
        query = query.filter(FinanceiroTitulo.bom_para >= de)
    if ate:
        query = query.filter(FinanceiroTitulo.bom_para <= ate)
    if q:
        query = query.filter(
            or_(
                FinanceiroTitulo.numero_doc.like(f"%{q}%"),
                FinanceiroTitulo.observacao.like(f"%{q}%"),
            )
        )

    query = query.order_by(FinanceiroTitulo.bom_para.asc(), FinanceiroTitulo.id.asc())
    return paginar(query, page, page_size)


def atualizar_titulo(db: Session, titulo_id: int, patch: TituloPatch) -> FinanceiroTitulo:
    alteracoes = {
        campo.name: getattr(patch, campo.name)
        for campo in fields(patch)
        if getattr(patch, campo.name) is not None
    }
    if not alteracoes:
        raise ErroValidacao("patch", "Nada para atualizar.")

    with transacao(db, "atualizar_titulo", titulo_id=titulo_id):
        titulo = (
            db.query(FinanceiroTitulo)
            .filter(FinanceiroTitulo.id == titulo_id)
            .with_for_update()
            .first()
        )
        if titulo is None:
            raise ErroNaoEncontrado("Título não encontrado")

        if "numero_doc" in alteracoes:
            titulo.numero_doc = alteracoes["numero_doc"]
        if "banco" in alteracoes:
            titulo.banco = alteracoes["banco"]
        if "agencia" in alteracoes:
            titulo.agencia = alteracoes["agencia"]
        if "conta" in alteracoes:
            titulo.conta = alteracoes["conta"]
        if "bom_para" in alteracoes:
            titulo.bom_para = como_data(alteracoes["bom_para"], "bom_para")
        if "observacao" in alteracoes:
            titulo.observacao = alteracoes["observacao"]
        titulo.updated_at = datetime.utcnow()
        db.flush()

    logger.info(f"Título {titulo_id} atualizado: {sorted(alteracoes)}")
    return titulo


def cancelar_titulo(db: Session, titulo_id: int) -> FinanceiroTitulo:
    """Exclusão lógica: o título vira CANCELADO e as baixas ficam no histórico"""
    with transacao(db, "cancelar_titulo", titulo_id=titulo_id):
        titulo = (
            db.query(FinanceiroTitulo)
            .filter(FinanceiroTitulo.id == titulo_id)
            .with_for_update()
            .first()
        )
        if titulo is None:
            raise ErroNaoEncontrado("Título não encontrado")
        if titulo.status == StatusTitulo.CANCELADO:
            raise ErroConflito("Título já cancelado")
        if titulo.status == StatusTitulo.BAIXADO:
            raise ErroEstadoInvalido("Título BAIXADO não pode ser cancelado")

        titulo.status = StatusTitulo.CANCELADO
        titulo.updated_at = datetime.utcnow()
        db.flush()

    logger.info(f"Título {titulo_id} cancelado")
    return titulo


def _lancamento_do_titulo(db: Session, titulo: FinanceiroTitulo) -> Optional[BlocoLancamento]:
    """Lançamento de origem do título (vínculo explícito ou busca aproximada)"""
    if titulo.lancamento_id:
        return (
            db.query(BlocoLancamento)
            .filter(BlocoLancamento.id == titulo.lancamento_id)
            .with_for_update()
            .first()
        )
    if not titulo.bloco_id:
        return None

    inicio = datetime.combine(titulo.bom_para, time.min)
    ja_vinculados = select(FinanceiroTitulo.lancamento_id).where(
        FinanceiroTitulo.lancamento_id.isnot(None),
        FinanceiroTitulo.status != StatusTitulo.CANCELADO,
    )
    candidatos = (
        db.query(BlocoLancamento)
        .filter(
            BlocoLancamento.bloco_id == titulo.bloco_id,
            BlocoLancamento.sentido == Sentido.ENTRADA,
            BlocoLancamento.tipo_recebimento == titulo.tipo,
            BlocoLancamento.status.in_(
                (StatusLancamento.PENDENTE, StatusLancamento.LIQUIDADO)
            ),
            BlocoLancamento.bom_para >= inicio,
            BlocoLancamento.bom_para < inicio + timedelta(days=1),
            BlocoLancamento.id.notin_(ja_vinculados),
        )
        .order_by(BlocoLancamento.criado_em.desc(), BlocoLancamento.id.desc())
        .with_for_update()
        .all()
    )
    valor_bruto = para_decimal(titulo.valor_bruto)
    proximos = [
        lanc for lanc in candidatos
        if abs(para_decimal(lanc.valor) - valor_bruto) <= settings.tolerancia_conciliacao
    ]
    if len(proximos) > 1:
        logger.warning(
            f"Título {titulo.id}: {len(proximos)} lançamentos compatíveis, "
            f"usando o mais recente ({proximos[0].id})"
        )
    return proximos[0] if proximos else None


def registrar_baixa(
    db: Session,
    titulo_id: int,
    valor_baixa: Any,
    data_baixa: Optional[datetime] = None,
    forma_pagto: Optional[str] = None,
    obs: Optional[str] = None,
    usuario_id: Optional[int] = None,
) -> Tuple[FinanceiroTitulo, FinanceiroBaixa, Optional[BlocoLancamento]]:
    """
    Registra uma baixa (total ou parcial) e recalcula o status do título.

    Returns:
        Tupla (titulo, baixa, lancamento marcado LIQUIDADO_FINANCEIRO ou None)

    Raises:
        ErroValidacao: valor não positivo ou acima do saldo do título
        ErroNaoEncontrado: título inexistente
        ErroEstadoInvalido: título DEVOLVIDO, CANCELADO ou BAIXADO
    """
    valor = _valor_positivo(valor_baixa, "valor_baixa")

    with transacao(db, "registrar_baixa", titulo_id=titulo_id):
        titulo = (
            db.query(FinanceiroTitulo)
            .filter(FinanceiroTitulo.id == titulo_id)
            .with_for_update()
            .first()
        )
        if titulo is None:
            raise ErroNaoEncontrado("Título não encontrado")
        if titulo.status in STATUS_SEM_BAIXA:
            raise ErroEstadoInvalido(
                f"Não é possível baixar um título em status {titulo.status.value}"
            )

        valor_bruto = para_decimal(titulo.valor_bruto)
        novo_baixado = para_decimal(titulo.valor_baixado) + valor
        if novo_baixado - valor_bruto > settings.tolerancia_baixa:
            raise ErroValidacao("valor_baixa", "Baixa excede o valor do título")

        baixa = FinanceiroBaixa(
            titulo_id=titulo_id,
            data_baixa=data_baixa or datetime.utcnow(),
            valor_baixa=valor,
            forma_pagto=forma_pagto,
            obs=obs,
            user_id=usuario_id,
        )
        db.add(baixa)

        titulo.valor_baixado = novo_baixado
        titulo.status = proximo_status(valor_bruto, novo_baixado, titulo.status)
        titulo.updated_at = datetime.utcnow()

        liquidado = None
        if titulo.status == StatusTitulo.BAIXADO:
            lancamento = _lancamento_do_titulo(db, titulo)
            if lancamento is not None and liquidar_no_financeiro(lancamento):
                liquidado = lancamento
        db.flush()

    logger.info(
        f"Baixa de {valor} no título {titulo_id}: status={titulo.status.value}, "
        f"lancamento_liquidado={liquidado.id if liquidado else None}"
    )
    return titulo, baixa, liquidado


def listar_baixas(db: Session, titulo_id: int) -> List[FinanceiroBaixa]:
    obter_titulo(db, titulo_id)
    return (
        db.query(FinanceiroBaixa)
        .filter(FinanceiroBaixa.titulo_id == titulo_id)
        .order_by(FinanceiroBaixa.data_baixa.desc(), FinanceiroBaixa.id.desc())
        .all()
    )


def saldo_em_aberto(db: Session, cliente_id: int) -> Decimal:
    """Saldo dos títulos em aberto do cliente (só títulos, sem lançamentos avulsos)"""
    return titulos_em_aberto(db, cliente_id)


def conferencia_diaria(
    db: Session,
    data: Optional[Any] = None,
    operador_id: Optional[int] = None,
    cliente_id: Optional[int] = None,
) -> Dict[str, Any]:
    """Títulos criados no dia, com total bruto por tipo"""
    dia = como_data(data, "data") if data else datetime.utcnow().date()
    inicio = datetime.combine(dia, time.min)

    query = db.query(FinanceiroTitulo).filter(
        FinanceiroTitulo.created_at >= inicio,
        FinanceiroTitulo.created_at < inicio + timedelta(days=1),
    )
    if operador_id:
        query = query.filter(FinanceiroTitulo.created_by == operador_id)
    if cliente_id:
        query = query.filter(FinanceiroTitulo.cliente_id == cliente_id)
    titulos = query.order_by(FinanceiroTitulo.created_at.desc()).all()

    resumo: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    for titulo in titulos:
        resumo[titulo.tipo] += para_decimal(titulo.valor_bruto)

    return {"data": dia, "total": len(titulos), "resumo": dict(resumo), "titulos": titulos}
