"""
Retaguarda financeira: blocos de clientes, lançamentos, cheques e fechamento do dia
"""

__version__ = "1.0.0"
