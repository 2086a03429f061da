"""
Ciclo de vida dos blocos: abrir, vincular pedidos, fechar.

Toda verificação "checa e age" acontece dentro de uma única transação com
SELECT ... FOR UPDATE, e as constraints do banco (índice único parcial de
bloco aberto, pedido_id único) cobrem o que o lock não alcança.
"""

import logging
import secrets
import time
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from backoffice.core.enums import Sentido, StatusBloco, StatusLancamento, TipoRecebimento
from backoffice.core.erros import (
    ErroConflito, ErroEstadoInvalido, ErroNaoEncontrado, ErroValidacao
)
from backoffice.db import transacao
from backoffice.models.bloco import Bloco, BlocoPedido
from backoffice.models.cliente import Cliente
from backoffice.models.fechamento import FechamentoItem
from backoffice.models.lancamento import BlocoLancamento
from backoffice.services.clientes import obter_cliente
from backoffice.services.paginacao import paginar
from backoffice.services.saldo import calcular_saldo

logger = logging.getLogger(__name__)

_DIGITOS_36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def _base36(numero: int) -> str:
    digitos = []
    while numero:
        numero, resto = divmod(numero, 36)
        digitos.append(_DIGITOS_36[resto])
    return "".join(reversed(digitos)) or "0"


def gerar_codigo(cliente_id: int, prefixo: str = "B") -> str:
    """Código legível: prefixo + cliente + timestamp em base 36 + sufixo aleatório"""
    carimbo = _base36(int(time.time() * 1000))
    return f"{prefixo}{cliente_id}-{carimbo}{secrets.token_hex(1).upper()}"


def travar_bloco(db: Session, bloco_id: int) -> Bloco:
    """Lê o bloco com lock de linha. Levanta ErroNaoEncontrado se não existir."""
    bloco = (
        db.query(Bloco)
        .filter(Bloco.id == bloco_id)
        .with_for_update()
        .first()
    )
    if bloco is None:
        raise ErroNaoEncontrado("Bloco não encontrado")
    return bloco


def exigir_aberto(bloco: Bloco, mensagem: str):
    if bloco.status != StatusBloco.ABERTO:
        raise ErroEstadoInvalido(mensagem)


def _criar_bloco(
    db: Session,
    cliente_id: int,
    codigo: str,
    observacao: Optional[str],
) -> Bloco:
    existente = (
        db.query(Bloco.id)
        .filter(
            Bloco.cliente_id == cliente_id,
            Bloco.codigo == codigo,
            Bloco.status == StatusBloco.ABERTO,
        )
        .with_for_update()
        .first()
    )
    if existente:
        raise ErroConflito("Já existe um bloco ABERTO com este código para o cliente")

    bloco = Bloco(
        cliente_id=cliente_id,
        codigo=codigo,
        observacao=observacao,
        status=StatusBloco.ABERTO,
        aberto_em=datetime.utcnow(),
    )
    db.add(bloco)
    db.flush()
    return bloco


def abrir_bloco(
    db: Session,
    cliente_id: int,
    codigo: Optional[str] = None,
    observacao: Optional[str] = None,
) -> Bloco:
    """
    Abre um bloco para o cliente.

    Args:
        db: Sessão do banco de dados
        cliente_id: Cliente dono do bloco
        codigo: Código legível (gerado se ausente)
        observacao: Texto livre

    Raises:
        ErroNaoEncontrado: cliente inexistente
        ErroConflito: já há bloco ABERTO com o mesmo código para o cliente
    """
    codigo_final = (codigo or "").strip() or gerar_codigo(cliente_id)
    if len(codigo_final) > 50:
        raise ErroValidacao("codigo", "codigo deve ter no máximo 50 caracteres")

    with transacao(db, "abrir_bloco", cliente_id=cliente_id, codigo=codigo_final):
        obter_cliente(db, cliente_id)
        bloco = _criar_bloco(db, cliente_id, codigo_final, observacao)

    logger.info(f"Bloco {bloco.id} aberto: cliente={cliente_id}, codigo={codigo_final}")
    return bloco


def obter_ou_criar_bloco_aberto(db: Session, cliente_id: int) -> Bloco:
    """
    Bloco ABERTO mais recente do cliente, ou um novo com código AUTO.
    Não abre transação própria: roda dentro da transação de quem chama.
    """
    obter_cliente(db, cliente_id)
    bloco = (
        db.query(Bloco)
        .filter(Bloco.cliente_id == cliente_id, Bloco.status == StatusBloco.ABERTO)
        .order_by(Bloco.aberto_em.desc(), Bloco.id.desc())
        .with_for_update()
        .first()
    )
    if bloco is not None:
        return bloco

    bloco = _criar_bloco(
        db,
        cliente_id,
        gerar_codigo(cliente_id, prefixo="AUTO-"),
        "Criado automaticamente ao inserir lançamento",
    )
    logger.info(f"Bloco {bloco.id} criado automaticamente para cliente {cliente_id}")
    return bloco


def obter_ou_abrir_bloco(db: Session, cliente_id: int) -> Bloco:
    with transacao(db, "obter_ou_abrir_bloco", cliente_id=cliente_id):
        bloco = obter_ou_criar_bloco_aberto(db, cliente_id)
    return bloco


def vincular_pedido(
    db: Session,
    bloco_id: int,
    pedido_id: int,
    valor_pedido: Optional[Decimal] = None,
    usuario_id: Optional[int] = None,
) -> Tuple[BlocoPedido, Optional[BlocoLancamento]]:
    """
    Vincula um pedido vendido ao bloco. Com valor_pedido > 0 gera também a
    SAIDA automática do tipo PEDIDO, na mesma transação.

    Returns:
        Tupla (vinculo, lancamento_gerado ou None)

    Raises:
        ErroNaoEncontrado: bloco inexistente
        ErroEstadoInvalido: bloco FECHADO
        ErroConflito: pedido já vinculado a algum bloco
    """
    if valor_pedido is not None and valor_pedido <= 0:
        raise ErroValidacao("valor_pedido", "valor_pedido deve ser positivo")

    with transacao(db, "vincular_pedido", bloco_id=bloco_id, pedido_id=pedido_id):
        bloco = travar_bloco(db, bloco_id)
        exigir_aberto(bloco, "Não é possível adicionar pedido em bloco FECHADO")

        ja_vinculado = (
            db.query(BlocoPedido.id)
            .filter(BlocoPedido.pedido_id == pedido_id)
            .with_for_update()
            .first()
        )
        if ja_vinculado:
            raise ErroConflito("Pedido já está vinculado a outro bloco")

        vinculo = BlocoPedido(
            bloco_id=bloco_id,
            pedido_id=pedido_id,
            criado_por=usuario_id,
            criado_em=datetime.utcnow(),
        )
        db.add(vinculo)

        lancamento = None
        if valor_pedido:
            lancamento = BlocoLancamento(
                bloco_id=bloco_id,
                tipo_recebimento=TipoRecebimento.PEDIDO.value,
                sentido=Sentido.SAIDA,
                valor=valor_pedido,
                data_lancamento=datetime.utcnow(),
                numero_referencia=str(pedido_id),
                referencia_pedido_id=pedido_id,
                status=StatusLancamento.PENDENTE,
                observacao="Débito automático do pedido",
                criado_por=usuario_id,
                criado_em=datetime.utcnow(),
            )
            db.add(lancamento)
        db.flush()

    logger.info(
        f"Pedido {pedido_id} vinculado ao bloco {bloco_id} "
        f"(lancamento_gerado={lancamento is not None})"
    )
    return vinculo, lancamento


def desvincular_pedido(
    db: Session,
    bloco_id: int,
    pedido_id: int,
    usuario_id: Optional[int] = None,
) -> Optional[BlocoLancamento]:
    """
    Remove o vínculo do pedido e desfaz a SAIDA automática dele.

    A SAIDA ainda PENDENTE (e fora de qualquer fechamento) é apagada; senão é
    lançado um estorno de ENTRADA com o mesmo valor.

    Returns:
        O lançamento de estorno, quando houver
    """
    with transacao(db, "desvincular_pedido", bloco_id=bloco_id, pedido_id=pedido_id):
        bloco = travar_bloco(db, bloco_id)
        exigir_aberto(bloco, "Não é possível desvincular pedido de bloco FECHADO")

        vinculo = (
            db.query(BlocoPedido)
            .filter(BlocoPedido.bloco_id == bloco_id, BlocoPedido.pedido_id == pedido_id)
            .first()
        )
        if vinculo is None:
            raise ErroNaoEncontrado("Vínculo não encontrado")

        saida = (
            db.query(BlocoLancamento)
            .filter(
                BlocoLancamento.bloco_id == bloco_id,
                BlocoLancamento.tipo_recebimento == TipoRecebimento.PEDIDO.value,
                or_(
                    BlocoLancamento.referencia_pedido_id == pedido_id,
                    BlocoLancamento.numero_referencia.in_([str(pedido_id), f"PED-{pedido_id}"]),
                ),
            )
            .order_by(BlocoLancamento.id.desc())
            .first()
        )

        estorno = None
        if saida is not None:
            em_fechamento = (
                db.query(FechamentoItem.lancamento_id)
                .filter(FechamentoItem.lancamento_id == saida.id)
                .first()
            )
            if saida.status == StatusLancamento.PENDENTE and not em_fechamento:
                db.delete(saida)
            else:
                estorno = BlocoLancamento(
                    bloco_id=bloco_id,
                    tipo_recebimento=TipoRecebimento.DEVOLUCAO.value,
                    sentido=Sentido.ENTRADA,
                    valor=saida.valor,
                    data_lancamento=datetime.utcnow(),
                    numero_referencia=f"ESTORNO-PED-{pedido_id}",
                    referencia_pedido_id=pedido_id,
                    referencia_lancamento_id=saida.id,
                    status=StatusLancamento.PENDENTE,
                    observacao="Estorno automático do pedido",
                    criado_por=usuario_id,
                    criado_em=datetime.utcnow(),
                )
                db.add(estorno)

        db.delete(vinculo)
        db.flush()

    logger.info(f"Pedido {pedido_id} desvinculado do bloco {bloco_id} (estorno={estorno is not None})")
    return estorno


def fechar_bloco(db: Session, bloco_id: int) -> Bloco:
    """
    Fecha o bloco se o saldo, lido na mesma transação, for exatamente zero.

    Raises:
        ErroNaoEncontrado: bloco inexistente ou já FECHADO
        ErroEstadoInvalido: saldo diferente de zero
    """
    with transacao(db, "fechar_bloco", bloco_id=bloco_id):
        bloco = (
            db.query(Bloco)
            .filter(Bloco.id == bloco_id, Bloco.status == StatusBloco.ABERTO)
            .with_for_update()
            .first()
        )
        if bloco is None:
            raise ErroNaoEncontrado("Bloco não encontrado ou já está fechado")

        saldo = calcular_saldo(db, bloco_id)
        if saldo != 0:
            logger.warning(f"Fechamento do bloco {bloco_id} recusado: saldo {saldo}")
            raise ErroEstadoInvalido(f"Não é possível fechar o bloco. Saldo atual: {saldo}")

        bloco.status = StatusBloco.FECHADO
        bloco.fechado_em = datetime.utcnow()
        db.flush()

    logger.info(f"Bloco {bloco_id} fechado")
    return bloco


def obter_bloco(db: Session, bloco_id: int) -> Bloco:
    bloco = db.get(Bloco, bloco_id)
    if bloco is None:
        raise ErroNaoEncontrado("Bloco não encontrado")
    return bloco


def listar_blocos(
    db: Session,
    cliente_id: Optional[int] = None,
    status: Optional[StatusBloco] = None,
    cliente: Optional[str] = None,
    busca: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[Bloco], int]:
    """
    Lista blocos, mais recentes primeiro.

    Args:
        cliente_id: Filtrar por cliente
        status: ABERTO ou FECHADO
        cliente: Trecho do nome fantasia
        busca: Trecho do código
    """
    query = db.query(Bloco).outerjoin(Cliente, Cliente.id == Bloco.cliente_id)

    if status:
        query = query.filter(Bloco.status == status)
    if cliente_id:
        query = query.filter(Bloco.cliente_id == cliente_id)
    if cliente:
        query = query.filter(Cliente.nome_fantasia.like(f"%{cliente}%"))
    if busca:
        query = query.filter(Bloco.codigo.like(f"%{busca}%"))

    return paginar(query.order_by(Bloco.id.desc()), page, limit)


def listar_pedidos(
    db: Session,
    bloco_id: int,
    page: int = 1,
    limit: int = 50,
) -> Tuple[List[BlocoPedido], int]:
    obter_bloco(db, bloco_id)
    query = (
        db.query(BlocoPedido)
        .filter(BlocoPedido.bloco_id == bloco_id)
        .order_by(BlocoPedido.id.desc())
    )
    return paginar(query, page, limit)
