"""
Catálogo de tipos de recebimento.

Faz o papel do cadastro de formas de pagamento: diz, para cada tipo, o sentido
do lançamento e quais campos extras são obrigatórios.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from backoffice.core.config import settings
from backoffice.core.enums import Sentido, TipoRecebimento
from backoffice.core.erros import ErroValidacao


@dataclass(frozen=True)
class RegraRecebimento:
    tipo: str
    sentido: Sentido
    exige_bom_para: bool = False
    exige_tipo_cheque: bool = False


TIPOS_ENTRADA = {
    TipoRecebimento.CHEQUE,
    TipoRecebimento.DINHEIRO,
    TipoRecebimento.BOLETO,
    TipoRecebimento.DEPOSITO,
    TipoRecebimento.PIX,
}


def normalizar_tipo(tipo: str) -> str:
    return " ".join((tipo or "").split()).upper()


class CatalogoRecebimentos:
    """Tabela fixa de classificação + tipos livres configurados"""

    def __init__(self, extras: Optional[Iterable[str]] = None):
        self._regras: Dict[str, RegraRecebimento] = {}
        for tipo in TipoRecebimento:
            sentido = Sentido.ENTRADA if tipo in TIPOS_ENTRADA else Sentido.SAIDA
            eh_cheque = tipo == TipoRecebimento.CHEQUE
            self._regras[tipo.value] = RegraRecebimento(
                tipo=tipo.value,
                sentido=sentido,
                exige_bom_para=eh_cheque,
                exige_tipo_cheque=eh_cheque,
            )
        for extra in extras or []:
            chave = normalizar_tipo(extra)
            if chave and chave not in self._regras:
                self._regras[chave] = RegraRecebimento(tipo=chave, sentido=Sentido.SAIDA)

    def regra(self, tipo: str) -> RegraRecebimento:
        chave = normalizar_tipo(tipo)
        regra = self._regras.get(chave)
        if regra is None:
            raise ErroValidacao(
                "tipo_recebimento",
                f"Tipo de recebimento desconhecido: {tipo!r}"
            )
        return regra

    def sentido(self, tipo: str) -> Sentido:
        return self.regra(tipo).sentido

    def tipos(self):
        return sorted(self._regras)


catalogo = CatalogoRecebimentos(settings.tipos_recebimento_extras)
