"""
Fixtures compartilhadas: banco SQLite em memória por teste, sessão e cliente HTTP
"""

import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

sys.path.insert(0, str(Path(__file__).parent.parent))

from backoffice.db import configurar_sqlite, get_db, init_db
from backoffice.models import Cliente


@pytest.fixture
def engine():
    engine_teste = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    configurar_sqlite(engine_teste)
    init_db(bind=engine_teste)
    yield engine_teste
    engine_teste.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def clientes(session_factory):
    """Cadastro mínimo de clientes (10, 20 e 30)"""
    db = session_factory()
    db.add_all([
        Cliente(id=10, nome_fantasia="Mercado Central"),
        Cliente(id=20, nome_fantasia="Padaria Boa Vista"),
        Cliente(id=30, nome_fantasia="Distribuidora Norte"),
    ])
    db.commit()
    db.close()
    return [10, 20, 30]


@pytest.fixture
def db(session_factory, clientes):
    sessao = session_factory()
    yield sessao
    sessao.rollback()
    sessao.close()


@pytest.fixture
def client(session_factory, clientes):
    from fastapi.testclient import TestClient
    from backoffice.main import app

    def _get_db_teste():
        sessao = session_factory()
        try:
            yield sessao
            sessao.commit()
        except Exception:
            sessao.rollback()
            raise
        finally:
            sessao.close()

    app.dependency_overrides[get_db] = _get_db_teste
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def cabecalhos():
    """Monta os headers de identidade repassados pelo gateway"""

    def _montar(permissao: str = "admin", usuario_id: int = 1) -> dict:
        return {"X-Usuario-Id": str(usuario_id), "X-Usuario-Permissao": permissao}

    return _montar
