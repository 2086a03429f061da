"""
Fechamento do dia: foto imutável dos lançamentos de uma data.

O cabeçalho é criado uma vez por data; os itens são apagados e recapturados a
cada reprocessamento. Criação e reprocessamento rodam em transação
SERIALIZABLE com lock no cabeçalho, e a PK em data_ref segura o que o lock não
pega (duas criações simultâneas para uma data ainda sem linha).
"""

import logging
from collections import defaultdict
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from backoffice.core.enums import Sentido, StatusLancamento
from backoffice.core.erros import ErroConflito, ErroNaoEncontrado, ErroValidacao
from backoffice.db import transacao
from backoffice.models.bloco import Bloco
from backoffice.models.cliente import Cliente
from backoffice.models.fechamento import FechamentoDia, FechamentoItem
from backoffice.models.lancamento import BlocoLancamento
from backoffice.services.saldo import ZERO, para_decimal

logger = logging.getLogger(__name__)


def como_data(data_ref: Any, campo: str = "data_ref") -> date:
    """Aceita date ou 'YYYY-MM-DD'"""
    if isinstance(data_ref, datetime):
        return data_ref.date()
    if isinstance(data_ref, date):
        return data_ref
    try:
        return date.fromisoformat(str(data_ref))
    except ValueError:
        raise ErroValidacao(campo, "Formato de data inválido. Use YYYY-MM-DD")


def _capturar_itens(db: Session, data_ref: date) -> int:
    """Insere um item por lançamento com data_lancamento no dia, copiando o status atual"""
    inicio = datetime.combine(data_ref, time.min)
    fim = inicio + timedelta(days=1)

    lancamentos = (
        db.query(BlocoLancamento.id, BlocoLancamento.status)
        .filter(
            BlocoLancamento.data_lancamento >= inicio,
            BlocoLancamento.data_lancamento < fim,
        )
        .order_by(BlocoLancamento.id)
        .all()
    )
    db.add_all(
        FechamentoItem(data_ref=data_ref, lancamento_id=lanc_id, status_no_dia=status)
        for lanc_id, status in lancamentos
    )
    db.flush()
    return len(lancamentos)


def criar_fechamento(
    db: Session,
    data_ref: Any,
    usuario_id: Optional[int] = None,
    observacao: Optional[str] = None,
) -> FechamentoDia:
    """
    Cria o fechamento do dia (cabeçalho + itens) em uma única transação.

    Raises:
        ErroValidacao: data malformada
        ErroConflito: já existe fechamento para a data (ou lock expirou)
    """
    data_ref = como_data(data_ref)

    with transacao(db, "criar_fechamento", serializavel=True, data_ref=data_ref.isoformat()):
        existente = (
            db.query(FechamentoDia)
            .filter(FechamentoDia.data_ref == data_ref)
            .with_for_update()
            .first()
        )
        if existente is not None:
            logger.warning(f"Fechamento duplicado recusado para {data_ref}")
            raise ErroConflito(f"O fechamento para o dia {data_ref} já existe.")

        fechamento = FechamentoDia(
            data_ref=data_ref,
            criado_por=usuario_id,
            criado_em=datetime.utcnow(),
            observacao=observacao,
        )
        db.add(fechamento)
        db.flush()
        qtd_itens = _capturar_itens(db, data_ref)

    logger.info(f"Fechamento {data_ref} criado com {qtd_itens} itens (usuario={usuario_id})")
    return fechamento


def reprocessar_fechamento(db: Session, data_ref: Any) -> FechamentoDia:
    """
    Apaga e recaptura os itens do fechamento a partir do estado atual dos
    lançamentos do dia. O cabeçalho não muda. Idempotente.

    Raises:
        ErroNaoEncontrado: não há fechamento para a data
    """
    data_ref = como_data(data_ref)

    with transacao(db, "reprocessar_fechamento", serializavel=True, data_ref=data_ref.isoformat()):
        fechamento = (
            db.query(FechamentoDia)
            .filter(FechamentoDia.data_ref == data_ref)
            .with_for_update()
            .first()
        )
        if fechamento is None:
            raise ErroNaoEncontrado(f"Fechamento para o dia {data_ref} não encontrado.")

        removidos = (
            db.query(FechamentoItem)
            .filter(FechamentoItem.data_ref == data_ref)
            .delete(synchronize_session="fetch")
        )
        qtd_itens = _capturar_itens(db, data_ref)

    logger.info(f"Fechamento {data_ref} reprocessado: {removidos} itens removidos, {qtd_itens} capturados")
    return fechamento


def _acumular(grupo: Dict[str, Dict[str, Any]], chave: str, valor: Decimal):
    grupo[chave]["quantidade"] += 1
    grupo[chave]["valor"] += valor


def obter_fechamento(db: Session, data_ref: Any) -> Dict[str, Any]:
    """
    Cabeçalho, itens e resumo do fechamento (leitura simples, sem lock).

    O resumo traz quantidade de itens, total de entradas e saídas (sem os
    CANCELADOS) e quebras por status no dia e por tipo de recebimento.
    """
    data_ref = como_data(data_ref)

    fechamento = db.get(FechamentoDia, data_ref)
    if fechamento is None:
        raise ErroNaoEncontrado(f"Fechamento para o dia {data_ref} não encontrado.")

    linhas = (
        db.query(FechamentoItem, BlocoLancamento, Bloco.cliente_id, Cliente.nome_fantasia)
        .join(BlocoLancamento, BlocoLancamento.id == FechamentoItem.lancamento_id)
        .join(Bloco, Bloco.id == BlocoLancamento.bloco_id)
        .outerjoin(Cliente, Cliente.id == Bloco.cliente_id)
        .filter(FechamentoItem.data_ref == data_ref)
        .order_by(FechamentoItem.lancamento_id)
        .all()
    )

    itens: List[Dict[str, Any]] = []
    total_entradas = ZERO
    total_saidas = ZERO
    por_status = defaultdict(lambda: {"quantidade": 0, "valor": ZERO})
    por_tipo = defaultdict(lambda: {"quantidade": 0, "valor": ZERO})

    for item, lancamento, cliente_id, nome_fantasia in linhas:
        valor = para_decimal(lancamento.valor)
        itens.append({
            "data_ref": item.data_ref,
            "lancamento_id": item.lancamento_id,
            "status_no_dia": item.status_no_dia,
            "status_atual": lancamento.status,
            "tipo_recebimento": lancamento.tipo_recebimento,
            "sentido": lancamento.sentido,
            "valor": valor,
            "bom_para": lancamento.bom_para,
            "bloco_id": lancamento.bloco_id,
            "cliente_id": cliente_id,
            "nome_fantasia": nome_fantasia,
        })

        _acumular(por_status, item.status_no_dia.value, valor)
        _acumular(por_tipo, lancamento.tipo_recebimento, valor)

        if item.status_no_dia == StatusLancamento.CANCELADO:
            continue
        if lancamento.sentido == Sentido.ENTRADA:
            total_entradas += valor
        else:
            total_saidas += valor

    return {
        "fechamento": fechamento,
        "itens": itens,
        "resumo": {
            "qtd_itens": len(itens),
            "total_entradas": total_entradas,
            "total_saidas": total_saidas,
            "por_status": dict(por_status),
            "por_tipo": dict(por_tipo),
        },
    }
