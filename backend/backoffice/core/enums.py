"""
Vocabulários fechados do razão (status, tipos, sentido)
"""

from enum import Enum


class StatusBloco(str, Enum):
    ABERTO = "ABERTO"
    FECHADO = "FECHADO"


class Sentido(str, Enum):
    ENTRADA = "ENTRADA"
    SAIDA = "SAIDA"


class TipoCheque(str, Enum):
    PROPRIO = "PROPRIO"
    TERCEIRO = "TERCEIRO"


class StatusLancamento(str, Enum):
    PENDENTE = "PENDENTE"
    LIQUIDADO = "LIQUIDADO"
    DEVOLVIDO = "DEVOLVIDO"
    CANCELADO = "CANCELADO"
    LIQUIDADO_FINANCEIRO = "LIQUIDADO_FINANCEIRO"


class StatusTitulo(str, Enum):
    ABERTO = "ABERTO"
    PARCIAL = "PARCIAL"
    BAIXADO = "BAIXADO"
    DEVOLVIDO = "DEVOLVIDO"
    CANCELADO = "CANCELADO"


class TipoRecebimento(str, Enum):
    CHEQUE = "CHEQUE"
    DINHEIRO = "DINHEIRO"
    BOLETO = "BOLETO"
    DEPOSITO = "DEPOSITO"
    PIX = "PIX"
    TROCA = "TROCA"
    BONIFICACAO = "BONIFICACAO"
    DESCONTO_A_VISTA = "DESCONTO A VISTA"
    DEVOLUCAO = "DEVOLUCAO"
    PEDIDO = "PEDIDO"


# Transições permitidas de status de lançamento
TRANSICOES_LANCAMENTO = {
    StatusLancamento.PENDENTE: {
        StatusLancamento.LIQUIDADO,
        StatusLancamento.DEVOLVIDO,
        StatusLancamento.CANCELADO,
        StatusLancamento.LIQUIDADO_FINANCEIRO,
    },
    StatusLancamento.LIQUIDADO: {StatusLancamento.LIQUIDADO_FINANCEIRO},
}

STATUS_TITULO_EM_ABERTO = (StatusTitulo.ABERTO, StatusTitulo.PARCIAL)


def transicao_permitida(atual: StatusLancamento, novo: StatusLancamento) -> bool:
    return novo in TRANSICOES_LANCAMENTO.get(atual, set())
