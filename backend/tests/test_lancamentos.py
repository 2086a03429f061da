"""
Testes do registro de lançamentos: validação por tipo, sentido, edição e exclusão
"""

import sys
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest
from backoffice.core.catalogo import CatalogoRecebimentos
from backoffice.core.enums import Sentido, StatusBloco, StatusLancamento, TipoCheque
from backoffice.core.erros import (
    ErroConflito, ErroEstadoInvalido, ErroNaoEncontrado, ErroValidacao
)
from backoffice.models import BlocoLancamento
from backoffice.services import blocos, lancamentos
from backoffice.services.cheques import liquidar_cheque
from backoffice.services.fechamentos import criar_fechamento
from backoffice.services.financeiro import criar_titulo
from backoffice.services.lancamentos import LancamentoPatch
from backoffice.services.saldo import saldo_bloco

AGORA = datetime(2024, 3, 1, 10, 0)


@pytest.fixture
def bloco(db):
    return blocos.abrir_bloco(db, 10)


def test_fluxo_pix_e_boleto_de_saida(db):
    """
    Bloco novo do cliente 10:
    - PIX 100.00 -> saldo -100.00
    - BOLETO 40.00 forçado como SAIDA -> saldo -60.00
    """
    bloco = blocos.abrir_bloco(db, 10)
    assert bloco.status == StatusBloco.ABERTO

    pix = lancamentos.adicionar_lancamento(db, bloco.id, "PIX", Decimal("100.00"), AGORA)
    assert pix.sentido == Sentido.ENTRADA
    assert pix.status == StatusLancamento.PENDENTE
    assert saldo_bloco(db, bloco.id) == Decimal("-100.00")

    boleto = lancamentos.adicionar_lancamento(
        db, bloco.id, "BOLETO", Decimal("40.00"), AGORA, sentido=Sentido.SAIDA
    )
    assert boleto.sentido == Sentido.SAIDA
    assert saldo_bloco(db, bloco.id) == Decimal("-60.00")


def test_cheque_sem_tipo_cheque(db, bloco):
    with pytest.raises(ErroValidacao) as exc:
        lancamentos.adicionar_lancamento(
            db, bloco.id, "CHEQUE", Decimal("50.00"), AGORA, bom_para=AGORA + timedelta(days=30)
        )

    assert exc.value.campo == "tipo_cheque"
    assert db.query(BlocoLancamento).count() == 0


def test_cheque_sem_bom_para(db, bloco):
    with pytest.raises(ErroValidacao) as exc:
        lancamentos.adicionar_lancamento(
            db, bloco.id, "CHEQUE", Decimal("50.00"), AGORA, tipo_cheque=TipoCheque.TERCEIRO
        )
    assert exc.value.campo == "bom_para"


def test_cheque_completo(db, bloco):
    cheque = lancamentos.adicionar_lancamento(
        db, bloco.id, "cheque", Decimal("50.00"), AGORA,
        bom_para=date(2024, 4, 1), tipo_cheque="terceiro", numero_referencia="000123",
    )

    assert cheque.tipo_recebimento == "CHEQUE"
    assert cheque.tipo_cheque == TipoCheque.TERCEIRO
    assert cheque.bom_para == datetime(2024, 4, 1)
    assert cheque.sentido == Sentido.ENTRADA


def test_sentido_pelo_catalogo(db, bloco):
    tipos_saida = ["TROCA", "BONIFICACAO", "DESCONTO A VISTA", "DEVOLUCAO", "PEDIDO"]
    for tipo in tipos_saida:
        lanc = lancamentos.adicionar_lancamento(db, bloco.id, tipo, Decimal("1.00"), AGORA)
        assert lanc.sentido == Sentido.SAIDA, tipo

    for tipo in ["DINHEIRO", "BOLETO", "DEPOSITO", "PIX"]:
        lanc = lancamentos.adicionar_lancamento(db, bloco.id, tipo, Decimal("1.00"), AGORA)
        assert lanc.sentido == Sentido.ENTRADA, tipo


def test_tipo_desconhecido(db, bloco):
    with pytest.raises(ErroValidacao) as exc:
        lancamentos.adicionar_lancamento(db, bloco.id, "CRIPTO", Decimal("1.00"), AGORA)
    assert exc.value.campo == "tipo_recebimento"


def test_catalogo_com_tipos_extras():
    catalogo = CatalogoRecebimentos(["  vale   refeicao "])

    regra = catalogo.regra("VALE REFEICAO")
    assert regra.sentido == Sentido.SAIDA
    assert not regra.exige_bom_para
    assert "VALE REFEICAO" in catalogo.tipos()


@pytest.mark.parametrize("valor", [Decimal("0"), Decimal("-10.00"), "abc"])
def test_valor_invalido(db, bloco, valor):
    with pytest.raises(ErroValidacao) as exc:
        lancamentos.adicionar_lancamento(db, bloco.id, "PIX", valor, AGORA)
    assert exc.value.campo == "valor"


def test_status_inicial_liquidado_financeiro_recusado(db, bloco):
    with pytest.raises(ErroValidacao) as exc:
        lancamentos.adicionar_lancamento(
            db, bloco.id, "PIX", Decimal("1.00"), AGORA,
            status=StatusLancamento.LIQUIDADO_FINANCEIRO,
        )
    assert exc.value.campo == "status"


def test_data_com_fuso_vira_utc(db, bloco):
    fuso_brasilia = timezone(timedelta(hours=-3))
    lanc = lancamentos.adicionar_lancamento(
        db, bloco.id, "PIX", Decimal("1.00"), datetime(2024, 3, 1, 22, 0, tzinfo=fuso_brasilia)
    )
    assert lanc.data_lancamento == datetime(2024, 3, 2, 1, 0)


def test_adicionar_em_bloco_fechado(db, bloco):
    blocos.fechar_bloco(db, bloco.id)

    with pytest.raises(ErroEstadoInvalido):
        lancamentos.adicionar_lancamento(db, bloco.id, "PIX", Decimal("1.00"), AGORA)


def test_adicionar_em_bloco_inexistente(db):
    with pytest.raises(ErroNaoEncontrado):
        lancamentos.adicionar_lancamento(db, 4242, "PIX", Decimal("1.00"), AGORA)


def test_registrar_pagamento_abre_bloco_automatico(db):
    lanc = lancamentos.registrar_pagamento(db, 30, "DINHEIRO", Decimal("75.00"), AGORA, usuario_id=3)

    bloco = blocos.obter_bloco(db, lanc.bloco_id)
    assert bloco.cliente_id == 30
    assert bloco.codigo.startswith("AUTO-30-")
    assert lanc.criado_por == 3

    # Segundo pagamento cai no mesmo bloco aberto
    outro = lancamentos.registrar_pagamento(db, 30, "PIX", Decimal("5.00"), AGORA)
    assert outro.bloco_id == bloco.id
    assert saldo_bloco(db, bloco.id) == Decimal("-80.00")


def test_registrar_pagamento_bloco_de_outro_cliente(db, bloco):
    with pytest.raises(ErroEstadoInvalido):
        lancamentos.registrar_pagamento(db, 20, "PIX", Decimal("5.00"), AGORA, bloco_id=bloco.id)


def test_registrar_pagamento_bloco_fechado(db, bloco):
    blocos.fechar_bloco(db, bloco.id)
    with pytest.raises(ErroEstadoInvalido):
        lancamentos.registrar_pagamento(db, 10, "PIX", Decimal("5.00"), AGORA, bloco_id=bloco.id)


def test_registrar_pagamento_cheque_usa_vencimento(db, bloco):
    lanc = lancamentos.registrar_pagamento(
        db, 10, "CHEQUE", Decimal("300.00"), AGORA,
        data_vencimento=date(2024, 5, 10), tipo_cheque="PROPRIO", bloco_id=bloco.id,
    )
    assert lanc.bloco_id == bloco.id
    assert lanc.bom_para == datetime(2024, 5, 10)


def test_atualizar_lancamento(db, bloco):
    lanc = lancamentos.adicionar_lancamento(db, bloco.id, "PIX", Decimal("10.00"), AGORA)

    atualizado = lancamentos.atualizar_lancamento(
        db, lanc.id, LancamentoPatch(valor=Decimal("12.50"), observacao="corrigido")
    )

    assert atualizado.valor == Decimal("12.50")
    assert atualizado.observacao == "corrigido"
    assert atualizado.tipo_recebimento == "PIX"
    assert saldo_bloco(db, bloco.id) == Decimal("-12.50")


def test_atualizar_lancamento_patch_vazio(db, bloco):
    lanc = lancamentos.adicionar_lancamento(db, bloco.id, "PIX", Decimal("10.00"), AGORA)
    with pytest.raises(ErroValidacao):
        lancamentos.atualizar_lancamento(db, lanc.id, LancamentoPatch())


def test_atualizar_lancamento_nao_pendente(db, bloco):
    cheque = lancamentos.adicionar_lancamento(
        db, bloco.id, "CHEQUE", Decimal("10.00"), AGORA,
        bom_para=AGORA, tipo_cheque=TipoCheque.PROPRIO,
    )
    liquidar_cheque(db, cheque.id)

    with pytest.raises(ErroEstadoInvalido):
        lancamentos.atualizar_lancamento(db, cheque.id, LancamentoPatch(valor=Decimal("1.00")))


def test_atualizar_lancamento_valor_invalido(db, bloco):
    lanc = lancamentos.adicionar_lancamento(db, bloco.id, "PIX", Decimal("10.00"), AGORA)
    with pytest.raises(ErroValidacao):
        lancamentos.atualizar_lancamento(db, lanc.id, LancamentoPatch(valor=Decimal("0")))

    assert lancamentos.obter_lancamento(db, lanc.id).valor == Decimal("10.00")


def test_excluir_lancamento(db, bloco):
    lanc = lancamentos.adicionar_lancamento(db, bloco.id, "PIX", Decimal("10.00"), AGORA)

    lancamentos.excluir_lancamento(db, bloco.id, lanc.id)

    with pytest.raises(ErroNaoEncontrado):
        lancamentos.obter_lancamento(db, lanc.id)


def test_excluir_lancamento_de_outro_bloco(db, bloco):
    outro = blocos.abrir_bloco(db, 20)
    lanc = lancamentos.adicionar_lancamento(db, outro.id, "PIX", Decimal("10.00"), AGORA)

    with pytest.raises(ErroNaoEncontrado):
        lancamentos.excluir_lancamento(db, bloco.id, lanc.id)


def test_excluir_lancamento_em_fechamento(db, bloco):
    """Lançamento já capturado em um fechamento do dia não pode ser excluído"""
    lanc = lancamentos.adicionar_lancamento(db, bloco.id, "PIX", Decimal("10.00"), AGORA)
    criar_fechamento(db, AGORA.date())

    with pytest.raises(ErroConflito):
        lancamentos.excluir_lancamento(db, bloco.id, lanc.id)

    assert lancamentos.obter_lancamento(db, lanc.id).id == lanc.id


def test_excluir_lancamento_em_fechamento_com_bloco_fechado(db, bloco):
    """O conflito do fechamento vale mesmo com o bloco já FECHADO"""
    lancamentos.adicionar_lancamento(db, bloco.id, "PIX", Decimal("10.00"), AGORA)
    troca = lancamentos.adicionar_lancamento(db, bloco.id, "TROCA", Decimal("10.00"), AGORA)
    criar_fechamento(db, AGORA.date())
    blocos.fechar_bloco(db, bloco.id)

    with pytest.raises(ErroConflito):
        lancamentos.excluir_lancamento(db, bloco.id, troca.id)


def test_excluir_lancamento_de_bloco_fechado(db, bloco):
    lanc = lancamentos.adicionar_lancamento(
        db, bloco.id, "PIX", Decimal("10.00"), AGORA, status=StatusLancamento.CANCELADO
    )
    blocos.fechar_bloco(db, bloco.id)

    with pytest.raises(ErroEstadoInvalido):
        lancamentos.excluir_lancamento(db, bloco.id, lanc.id)


def test_excluir_lancamento_com_titulo(db, bloco):
    lanc = lancamentos.adicionar_lancamento(
        db, bloco.id, "BOLETO", Decimal("90.00"), AGORA, bom_para=date(2024, 4, 1)
    )
    criar_titulo(db, 10, "BOLETO", date(2024, 4, 1), Decimal("90.00"), lancamento_id=lanc.id)

    with pytest.raises(ErroConflito):
        lancamentos.excluir_lancamento(db, bloco.id, lanc.id)


def test_listar_lancamentos_filtros(db, bloco):
    lancamentos.adicionar_lancamento(db, bloco.id, "PIX", Decimal("1.00"), AGORA)
    lancamentos.adicionar_lancamento(db, bloco.id, "TROCA", Decimal("2.00"), AGORA)
    lancamentos.adicionar_lancamento(
        db, bloco.id, "PIX", Decimal("3.00"), AGORA, status=StatusLancamento.CANCELADO
    )

    itens, total = lancamentos.listar_lancamentos(db, bloco.id, tipo="pix")
    assert total == 2

    itens, total = lancamentos.listar_lancamentos(db, bloco.id, status=StatusLancamento.CANCELADO)
    assert [l.valor for l in itens] == [Decimal("3.00")]


def test_historico_cliente_todos_os_blocos(db):
    b1 = blocos.abrir_bloco(db, 10, codigo="H-1")
    b2 = blocos.abrir_bloco(db, 10, codigo="H-2")
    lancamentos.adicionar_lancamento(db, b1.id, "PIX", Decimal("1.00"), AGORA)
    lancamentos.adicionar_lancamento(db, b2.id, "PIX", Decimal("2.00"), AGORA + timedelta(days=1))
    outro = blocos.abrir_bloco(db, 20)
    lancamentos.adicionar_lancamento(db, outro.id, "PIX", Decimal("9.00"), AGORA)

    historico = lancamentos.historico_cliente(db, 10)

    assert [l.valor for l in historico] == [Decimal("2.00"), Decimal("1.00")]
