"""
Testes do ciclo de vida de blocos: abertura, pedidos vinculados e fechamento
"""

import sys
from datetime import datetime
from decimal import Decimal
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest
from backoffice.core.enums import Sentido, StatusBloco, StatusLancamento
from backoffice.core.erros import (
    ErroConflito, ErroEstadoInvalido, ErroNaoEncontrado, ErroValidacao
)
from backoffice.db import transacao
from backoffice.models import Bloco, BlocoLancamento, BlocoPedido
from backoffice.services import blocos
from backoffice.services.fechamentos import criar_fechamento
from backoffice.services.lancamentos import adicionar_lancamento
from backoffice.services.saldo import saldo_bloco

AGORA = datetime(2024, 3, 1, 10, 0)


def test_abrir_bloco_gera_codigo_e_fica_aberto(db):
    """
    Valida:
    - Código gerado no formato B{cliente}-...
    - Status ABERTO e saldo zero
    """
    bloco = blocos.abrir_bloco(db, 10)

    assert bloco.codigo.startswith("B10-")
    assert bloco.status == StatusBloco.ABERTO
    assert bloco.fechado_em is None
    assert saldo_bloco(db, bloco.id) == Decimal("0.00")


def test_abrir_bloco_codigo_duplicado_em_aberto(db):
    blocos.abrir_bloco(db, 10, codigo="SEMANA-10")

    with pytest.raises(ErroConflito):
        blocos.abrir_bloco(db, 10, codigo="SEMANA-10")

    # Outro cliente pode usar o mesmo código
    outro = blocos.abrir_bloco(db, 20, codigo="SEMANA-10")
    assert outro.cliente_id == 20

    abertos = (
        db.query(Bloco)
        .filter(Bloco.cliente_id == 10, Bloco.codigo == "SEMANA-10", Bloco.status == StatusBloco.ABERTO)
        .count()
    )
    assert abertos == 1


def test_codigo_pode_ser_reusado_depois_de_fechado(db):
    primeiro = blocos.abrir_bloco(db, 10, codigo="MARCO")
    blocos.fechar_bloco(db, primeiro.id)

    segundo = blocos.abrir_bloco(db, 10, codigo="MARCO")

    assert segundo.id != primeiro.id
    assert segundo.status == StatusBloco.ABERTO


def test_indice_unico_parcial_vira_conflito(db):
    """Sem a checagem do serviço, a constraint do banco segura o segundo bloco aberto"""
    with pytest.raises(ErroConflito) as exc:
        with transacao(db, "teste_indice"):
            db.add(Bloco(cliente_id=10, codigo="DUP", status=StatusBloco.ABERTO, aberto_em=AGORA))
            db.flush()
            db.add(Bloco(cliente_id=10, codigo="DUP", status=StatusBloco.ABERTO, aberto_em=AGORA))
            db.flush()

    assert exc.value.retentavel is False
    assert db.query(Bloco).filter(Bloco.codigo == "DUP").count() == 0


def test_abrir_bloco_cliente_inexistente(db):
    with pytest.raises(ErroNaoEncontrado):
        blocos.abrir_bloco(db, 999)


def test_abrir_bloco_codigo_longo(db):
    with pytest.raises(ErroValidacao) as exc:
        blocos.abrir_bloco(db, 10, codigo="X" * 51)
    assert exc.value.campo == "codigo"


def test_fechar_bloco_com_saldo_recusado(db):
    """Saldo 60.00 impede o fechamento e o bloco continua ABERTO"""
    bloco = blocos.abrir_bloco(db, 10)
    adicionar_lancamento(db, bloco.id, "TROCA", Decimal("60.00"), AGORA)

    with pytest.raises(ErroEstadoInvalido) as exc:
        blocos.fechar_bloco(db, bloco.id)

    assert "60.00" in exc.value.mensagem
    assert blocos.obter_bloco(db, bloco.id).status == StatusBloco.ABERTO


def test_fechar_bloco_com_saldo_zero(db):
    bloco = blocos.abrir_bloco(db, 10)
    adicionar_lancamento(db, bloco.id, "PIX", Decimal("100.00"), AGORA)
    adicionar_lancamento(db, bloco.id, "TROCA", Decimal("100.00"), AGORA)

    fechado = blocos.fechar_bloco(db, bloco.id)

    assert fechado.status == StatusBloco.FECHADO
    assert fechado.fechado_em is not None

    # Fechar de novo: bloco não encontrado entre os abertos
    with pytest.raises(ErroNaoEncontrado):
        blocos.fechar_bloco(db, bloco.id)


def test_fechar_bloco_ignora_cancelados(db):
    bloco = blocos.abrir_bloco(db, 10)
    adicionar_lancamento(
        db, bloco.id, "TROCA", Decimal("25.00"), AGORA, status=StatusLancamento.CANCELADO
    )

    assert blocos.fechar_bloco(db, bloco.id).status == StatusBloco.FECHADO


def test_vincular_pedido_gera_saida_automatica(db):
    bloco = blocos.abrir_bloco(db, 10)

    vinculo, lancamento = blocos.vincular_pedido(db, bloco.id, 501, Decimal("250.00"), usuario_id=7)

    assert vinculo.pedido_id == 501
    assert lancamento.tipo_recebimento == "PEDIDO"
    assert lancamento.sentido == Sentido.SAIDA
    assert lancamento.referencia_pedido_id == 501
    assert lancamento.criado_por == 7
    assert saldo_bloco(db, bloco.id) == Decimal("250.00")


def test_vincular_pedido_sem_valor(db):
    bloco = blocos.abrir_bloco(db, 10)

    vinculo, lancamento = blocos.vincular_pedido(db, bloco.id, 502)

    assert lancamento is None
    assert db.query(BlocoLancamento).filter(BlocoLancamento.bloco_id == bloco.id).count() == 0
    assert vinculo.bloco_id == bloco.id


def test_vincular_pedido_ja_vinculado_a_outro_bloco(db):
    """Pedido 99 no bloco 1, depois no bloco 2: o segundo vínculo é conflito"""
    bloco_1 = blocos.abrir_bloco(db, 10)
    bloco_2 = blocos.abrir_bloco(db, 20)
    blocos.vincular_pedido(db, bloco_1.id, 99)

    with pytest.raises(ErroConflito) as exc:
        blocos.vincular_pedido(db, bloco_2.id, 99, Decimal("10.00"))

    assert "outro bloco" in exc.value.mensagem
    vinculos = db.query(BlocoPedido).filter(BlocoPedido.pedido_id == 99).all()
    assert [v.bloco_id for v in vinculos] == [bloco_1.id]
    # Nada gerado no segundo bloco
    assert saldo_bloco(db, bloco_2.id) == Decimal("0.00")


def test_vincular_pedido_em_bloco_fechado(db):
    bloco = blocos.abrir_bloco(db, 10)
    blocos.fechar_bloco(db, bloco.id)

    with pytest.raises(ErroEstadoInvalido):
        blocos.vincular_pedido(db, bloco.id, 77)


def test_vincular_pedido_valor_negativo(db):
    bloco = blocos.abrir_bloco(db, 10)

    with pytest.raises(ErroValidacao) as exc:
        blocos.vincular_pedido(db, bloco.id, 78, Decimal("-5"))
    assert exc.value.campo == "valor_pedido"


def test_desvincular_pedido_pendente_apaga_saida(db):
    bloco = blocos.abrir_bloco(db, 10)
    blocos.vincular_pedido(db, bloco.id, 600, Decimal("80.00"))

    estorno = blocos.desvincular_pedido(db, bloco.id, 600)

    assert estorno is None
    assert saldo_bloco(db, bloco.id) == Decimal("0.00")
    assert db.query(BlocoPedido).filter(BlocoPedido.pedido_id == 600).count() == 0
    # Pedido pode ser vinculado de novo
    blocos.vincular_pedido(db, bloco.id, 600)


def test_desvincular_pedido_ja_fechado_no_dia_gera_estorno(db):
    bloco = blocos.abrir_bloco(db, 10)
    _, saida = blocos.vincular_pedido(db, bloco.id, 601, Decimal("80.00"))
    criar_fechamento(db, saida.data_lancamento.date())

    estorno = blocos.desvincular_pedido(db, bloco.id, 601)

    assert estorno is not None
    assert estorno.tipo_recebimento == "DEVOLUCAO"
    assert estorno.sentido == Sentido.ENTRADA
    assert estorno.numero_referencia == "ESTORNO-PED-601"
    assert estorno.referencia_lancamento_id == saida.id
    assert saldo_bloco(db, bloco.id) == Decimal("0.00")


def test_desvincular_pedido_inexistente(db):
    bloco = blocos.abrir_bloco(db, 10)

    with pytest.raises(ErroNaoEncontrado):
        blocos.desvincular_pedido(db, bloco.id, 12345)


def test_obter_ou_abrir_bloco_reaproveita_aberto(db):
    automatico = blocos.obter_ou_abrir_bloco(db, 30)
    assert automatico.codigo.startswith("AUTO-30-")

    de_novo = blocos.obter_ou_abrir_bloco(db, 30)
    assert de_novo.id == automatico.id


def test_listar_blocos_filtros_e_paginacao(db):
    b1 = blocos.abrir_bloco(db, 10, codigo="A-1")
    blocos.abrir_bloco(db, 10, codigo="A-2")
    blocos.abrir_bloco(db, 20, codigo="B-1")
    blocos.fechar_bloco(db, b1.id)

    itens, total = blocos.listar_blocos(db, cliente_id=10)
    assert total == 2
    # Mais recentes primeiro
    assert [b.codigo for b in itens] == ["A-2", "A-1"]

    itens, total = blocos.listar_blocos(db, status=StatusBloco.ABERTO)
    assert total == 2

    itens, total = blocos.listar_blocos(db, cliente="Padaria")
    assert [b.codigo for b in itens] == ["B-1"]

    itens, total = blocos.listar_blocos(db, busca="A-", page=2, limit=1)
    assert total == 2
    assert [b.codigo for b in itens] == ["A-1"]

    with pytest.raises(ErroValidacao):
        blocos.listar_blocos(db, page=0)


def test_listar_pedidos(db):
    bloco = blocos.abrir_bloco(db, 10)
    blocos.vincular_pedido(db, bloco.id, 1)
    blocos.vincular_pedido(db, bloco.id, 2)

    itens, total = blocos.listar_pedidos(db, bloco.id)

    assert total == 2
    assert [p.pedido_id for p in itens] == [2, 1]

    with pytest.raises(ErroNaoEncontrado):
        blocos.listar_pedidos(db, 9999)
