"""
Registro de lançamentos nos blocos.

Valida os campos exigidos por tipo (catálogo de recebimentos), deriva o
sentido do tipo e grava o lançamento sempre sob o lock do bloco, para não
competir com um fechamento de bloco em andamento.
"""

import logging
from dataclasses import dataclass, fields
from datetime import date, datetime, time, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional, Tuple

from sqlalchemy.orm import Session

from backoffice.core.catalogo import catalogo, RegraRecebimento
from backoffice.core.enums import Sentido, StatusBloco, StatusLancamento, TipoCheque
from backoffice.core.erros import (
    ErroConflito, ErroEstadoInvalido, ErroNaoEncontrado, ErroValidacao
)
from backoffice.db import transacao
from backoffice.models.bloco import Bloco
from backoffice.models.fechamento import FechamentoItem
from backoffice.models.financeiro import FinanceiroTitulo
from backoffice.models.lancamento import BlocoLancamento
from backoffice.services.blocos import exigir_aberto, obter_bloco, obter_ou_criar_bloco_aberto, travar_bloco
from backoffice.services.clientes import obter_cliente
from backoffice.services.paginacao import paginar
from backoffice.services.saldo import CENTAVOS

logger = logging.getLogger(__name__)

# Status aceitos na criação (LIQUIDADO_FINANCEIRO só vem da baixa de título)
STATUS_INICIAIS = (
    StatusLancamento.PENDENTE,
    StatusLancamento.LIQUIDADO,
    StatusLancamento.DEVOLVIDO,
    StatusLancamento.CANCELADO,
)


@dataclass
class LancamentoPatch:
    """Campos alteráveis de um lançamento. None = manter o valor atual."""

    data_lancamento: Optional[datetime] = None
    bom_para: Optional[datetime] = None
    valor: Optional[Decimal] = None
    tipo_cheque: Optional[TipoCheque] = None
    numero_referencia: Optional[str] = None
    observacao: Optional[str] = None


def _como_valor(valor: Any) -> Decimal:
    try:
        convertido = Decimal(str(valor)).quantize(CENTAVOS)
    except (InvalidOperation, ValueError, TypeError):
        raise ErroValidacao("valor", f"valor inválido: {valor!r}")
    if convertido <= 0:
        raise ErroValidacao("valor", "valor deve ser positivo")
    return convertido


def _como_datetime(valor: Any, campo: str) -> Optional[datetime]:
    if valor is None:
        return None
    if isinstance(valor, datetime):
        # Guarda em UTC ingênuo, como o resto das colunas DateTime
        if valor.tzinfo is not None:
            valor = valor.astimezone(timezone.utc).replace(tzinfo=None)
        return valor
    if isinstance(valor, date):
        return datetime.combine(valor, time.min)
    if isinstance(valor, str):
        try:
            return _como_datetime(datetime.fromisoformat(valor.replace("Z", "+00:00")), campo)
        except ValueError:
            pass
    raise ErroValidacao(campo, f"{campo} inválido: {valor!r}")


def _como_enum(enum_cls, valor: Any, campo: str):
    if valor is None or isinstance(valor, enum_cls):
        return valor
    try:
        return enum_cls(str(valor).strip().upper())
    except ValueError:
        raise ErroValidacao(campo, f"{campo} inválido: {valor!r}")


def _validar_campos_do_tipo(regra: RegraRecebimento, bom_para, tipo_cheque):
    if regra.exige_tipo_cheque and not tipo_cheque:
        raise ErroValidacao("tipo_cheque", f"tipo_cheque é obrigatório para {regra.tipo}")
    if regra.exige_bom_para and not bom_para:
        raise ErroValidacao("bom_para", f"bom_para é obrigatório para {regra.tipo}")


def inserir_lancamento(
    db: Session,
    bloco: Bloco,
    tipo_recebimento: str,
    valor: Any,
    data_lancamento: Any,
    bom_para: Any = None,
    tipo_cheque: Any = None,
    numero_referencia: Optional[str] = None,
    status: Any = StatusLancamento.PENDENTE,
    observacao: Optional[str] = None,
    sentido: Any = None,
    criado_por: Optional[int] = None,
) -> BlocoLancamento:
    """
    Valida e insere um lançamento no bloco já travado pelo chamador.
    Não abre transação própria.
    """
    regra = catalogo.regra(tipo_recebimento)
    valor_final = _como_valor(valor)
    data_final = _como_datetime(data_lancamento, "data_lancamento")
    if data_final is None:
        raise ErroValidacao("data_lancamento", "data_lancamento é obrigatório")
    bom_para_final = _como_datetime(bom_para, "bom_para")
    tipo_cheque_final = _como_enum(TipoCheque, tipo_cheque, "tipo_cheque")
    status_final = _como_enum(StatusLancamento, status, "status") or StatusLancamento.PENDENTE
    if status_final not in STATUS_INICIAIS:
        raise ErroValidacao("status", f"status inicial não permitido: {status_final.value}")

    _validar_campos_do_tipo(regra, bom_para_final, tipo_cheque_final)

    lancamento = BlocoLancamento(
        bloco_id=bloco.id,
        tipo_recebimento=regra.tipo,
        sentido=_como_enum(Sentido, sentido, "sentido") or regra.sentido,
        valor=valor_final,
        data_lancamento=data_final,
        bom_para=bom_para_final,
        tipo_cheque=tipo_cheque_final,
        numero_referencia=numero_referencia,
        status=status_final,
        observacao=observacao,
        criado_por=criado_por,
        criado_em=datetime.utcnow(),
    )
    db.add(lancamento)
    db.flush()
    return lancamento


def adicionar_lancamento(
    db: Session,
    bloco_id: int,
    tipo_recebimento: str,
    valor: Any,
    data_lancamento: Any,
    bom_para: Any = None,
    tipo_cheque: Any = None,
    numero_referencia: Optional[str] = None,
    status: Any = StatusLancamento.PENDENTE,
    observacao: Optional[str] = None,
    sentido: Any = None,
    usuario_id: Optional[int] = None,
) -> BlocoLancamento:
    """
    Adiciona um lançamento a um bloco ABERTO.

    Args:
        db: Sessão do banco de dados
        bloco_id: Bloco dono do lançamento
        tipo_recebimento: CHEQUE, PIX, BOLETO... (ver catálogo)
        valor: Valor positivo
        data_lancamento: Data/hora do lançamento
        bom_para: Vencimento (obrigatório para CHEQUE)
        tipo_cheque: PROPRIO/TERCEIRO (obrigatório para CHEQUE)
        sentido: Força ENTRADA/SAIDA; por padrão vem do tipo

    Raises:
        ErroNaoEncontrado: bloco inexistente
        ErroEstadoInvalido: bloco FECHADO
        ErroValidacao: campo ausente ou inválido (com o nome do campo)
    """
    with transacao(db, "adicionar_lancamento", bloco_id=bloco_id):
        bloco = travar_bloco(db, bloco_id)
        exigir_aberto(bloco, "Não é possível adicionar lançamento em bloco FECHADO")
        lancamento = inserir_lancamento(
            db,
            bloco,
            tipo_recebimento,
            valor,
            data_lancamento,
            bom_para=bom_para,
            tipo_cheque=tipo_cheque,
            numero_referencia=numero_referencia,
            status=status,
            observacao=observacao,
            sentido=sentido,
            criado_por=usuario_id,
        )

    logger.info(
        f"Lançamento {lancamento.id} adicionado ao bloco {bloco_id}: "
        f"{lancamento.tipo_recebimento} {lancamento.sentido.value} {lancamento.valor}"
    )
    return lancamento


def registrar_pagamento(
    db: Session,
    cliente_id: int,
    forma_pagamento: str,
    valor: Any,
    data_lancamento: Any,
    data_vencimento: Any = None,
    tipo_cheque: Any = None,
    numero_referencia: Optional[str] = None,
    observacoes: Optional[str] = None,
    bloco_id: Optional[int] = None,
    usuario_id: Optional[int] = None,
) -> BlocoLancamento:
    """
    Entrada de pagamento do cliente: usa o bloco informado ou o bloco ABERTO
    mais recente, criando um se não houver. Pagamento nunca fica órfão.

    Raises:
        ErroEstadoInvalido: bloco informado inexistente, fechado ou de outro cliente
    """
    with transacao(db, "registrar_pagamento", cliente_id=cliente_id, bloco_id=bloco_id):
        if bloco_id:
            obter_cliente(db, cliente_id)
            bloco = (
                db.query(Bloco)
                .filter(
                    Bloco.id == bloco_id,
                    Bloco.cliente_id == cliente_id,
                    Bloco.status == StatusBloco.ABERTO,
                )
                .with_for_update()
                .first()
            )
            if bloco is None:
                raise ErroEstadoInvalido(
                    "Bloco inválido: inexistente, fechado ou não pertence ao cliente."
                )
        else:
            bloco = obter_ou_criar_bloco_aberto(db, cliente_id)

        lancamento = inserir_lancamento(
            db,
            bloco,
            forma_pagamento,
            valor,
            data_lancamento,
            bom_para=data_vencimento,
            tipo_cheque=tipo_cheque,
            numero_referencia=numero_referencia,
            status=StatusLancamento.PENDENTE,
            observacao=observacoes,
            criado_por=usuario_id,
        )

    logger.info(
        f"Pagamento registrado: cliente={cliente_id}, bloco={lancamento.bloco_id}, "
        f"lancamento={lancamento.id}"
    )
    return lancamento


def atualizar_lancamento(
    db: Session,
    lancamento_id: int,
    patch: LancamentoPatch,
) -> BlocoLancamento:
    """
    Altera campos de um lançamento PENDENTE de bloco ABERTO.
    Cada campo do patch vai para uma coluna fixa.
    """
    alteracoes = {
        campo.name: getattr(patch, campo.name)
        for campo in fields(patch)
        if getattr(patch, campo.name) is not None
    }
    if not alteracoes:
        raise ErroValidacao("patch", "Nenhum campo para atualizar")

    with transacao(db, "atualizar_lancamento", lancamento_id=lancamento_id):
        lancamento = db.get(BlocoLancamento, lancamento_id)
        if lancamento is None:
            raise ErroNaoEncontrado("Lançamento não encontrado")
        bloco = travar_bloco(db, lancamento.bloco_id)
        exigir_aberto(bloco, "Não é possível alterar lançamento de bloco FECHADO")
        db.refresh(lancamento, with_for_update=True)
        if lancamento.status != StatusLancamento.PENDENTE:
            raise ErroEstadoInvalido(
                f"Somente lançamentos PENDENTES podem ser alterados (status atual: "
                f"{lancamento.status.value})"
            )

        if "valor" in alteracoes:
            lancamento.valor = _como_valor(alteracoes["valor"])
        if "data_lancamento" in alteracoes:
            lancamento.data_lancamento = _como_datetime(
                alteracoes["data_lancamento"], "data_lancamento"
            )
        if "bom_para" in alteracoes:
            lancamento.bom_para = _como_datetime(alteracoes["bom_para"], "bom_para")
        if "tipo_cheque" in alteracoes:
            lancamento.tipo_cheque = _como_enum(TipoCheque, alteracoes["tipo_cheque"], "tipo_cheque")
        if "numero_referencia" in alteracoes:
            lancamento.numero_referencia = alteracoes["numero_referencia"]
        if "observacao" in alteracoes:
            lancamento.observacao = alteracoes["observacao"]

        _validar_campos_do_tipo(
            catalogo.regra(lancamento.tipo_recebimento),
            lancamento.bom_para,
            lancamento.tipo_cheque,
        )
        db.flush()

    logger.info(f"Lançamento {lancamento_id} atualizado: {sorted(alteracoes)}")
    return lancamento


def excluir_lancamento(db: Session, bloco_id: int, lancamento_id: int):
    """
    Exclusão física de um lançamento.

    Raises:
        ErroNaoEncontrado: lançamento não existe neste bloco
        ErroConflito: lançamento já faz parte de um fechamento do dia ou de um título
        ErroEstadoInvalido: bloco FECHADO
    """
    with transacao(db, "excluir_lancamento", bloco_id=bloco_id, lancamento_id=lancamento_id):
        bloco = travar_bloco(db, bloco_id)
        lancamento = (
            db.query(BlocoLancamento)
            .filter(BlocoLancamento.id == lancamento_id, BlocoLancamento.bloco_id == bloco_id)
            .with_for_update()
            .first()
        )
        if lancamento is None:
            raise ErroNaoEncontrado("Lançamento não encontrado")

        em_fechamento = (
            db.query(FechamentoItem.data_ref)
            .filter(FechamentoItem.lancamento_id == lancamento_id)
            .first()
        )
        if em_fechamento:
            raise ErroConflito(
                "Não é possível excluir: lançamento já vinculado a fechamento do dia."
            )

        exigir_aberto(bloco, "Não é possível excluir lançamento de bloco FECHADO")

        com_titulo = (
            db.query(FinanceiroTitulo.id)
            .filter(FinanceiroTitulo.lancamento_id == lancamento_id)
            .first()
        )
        if com_titulo:
            raise ErroConflito("Não é possível excluir: lançamento vinculado a título financeiro.")

        db.delete(lancamento)
        db.flush()

    logger.info(f"Lançamento {lancamento_id} excluído do bloco {bloco_id}")


def obter_lancamento(db: Session, lancamento_id: int) -> BlocoLancamento:
    lancamento = db.get(BlocoLancamento, lancamento_id)
    if lancamento is None:
        raise ErroNaoEncontrado("Lançamento não encontrado")
    return lancamento


def listar_lancamentos(
    db: Session,
    bloco_id: int,
    status: Optional[StatusLancamento] = None,
    tipo: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
) -> Tuple[List[BlocoLancamento], int]:
    obter_bloco(db, bloco_id)
    query = db.query(BlocoLancamento).filter(BlocoLancamento.bloco_id == bloco_id)
    if status:
        query = query.filter(BlocoLancamento.status == status)
    if tipo:
        query = query.filter(BlocoLancamento.tipo_recebimento == catalogo.regra(tipo).tipo)
    return paginar(query.order_by(BlocoLancamento.id.desc()), page, limit)


def historico_cliente(db: Session, cliente_id: int) -> List[BlocoLancamento]:
    """Todos os lançamentos do cliente, de todos os blocos"""
    obter_cliente(db, cliente_id)
    return (
        db.query(BlocoLancamento)
        .join(Bloco, Bloco.id == BlocoLancamento.bloco_id)
        .filter(Bloco.cliente_id == cliente_id)
        .order_by(BlocoLancamento.data_lancamento.desc(), BlocoLancamento.id.desc())
        .all()
    )
