"""
Shared fixtures: in-memory Firestore/Storage, fake identity accounts and a
TestClient wired to them.
"""
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from agency.config import Settings
from agency.main import create_app
from fakes import FakeBucket, FakeFirestore, FakeIdentity, principal

PASSWORD = "segredo123"

USERS = {
    "admin1": {"email": "admin@agencia.com.br", "displayName": "Ana Admin", "role": "admin"},
    "partner1": {"email": "partner@agencia.com.br", "displayName": "Paulo Sócio", "role": "partner"},
    "finance1": {"email": "finance@agencia.com.br", "displayName": "Fernanda", "role": "finance"},
    "dj1": {"email": "dj@agencia.com.br", "displayName": "DJ Alok", "role": "dj", "dj_percentual": 0.6},
    "dj2": {"email": "dj2@agencia.com.br", "displayName": "DJ Sem Percentual", "role": "dj"},
    "producer1": {"email": "producer@agencia.com.br", "displayName": "Pedro", "role": "producer"},
}

# uid "ghost" can sign in but has no profile document.
ACCOUNTS = {
    data["email"]: (PASSWORD, principal(uid, data["email"], data["displayName"]))
    for uid, data in USERS.items()
}
ACCOUNTS["ghost@agencia.com.br"] = (PASSWORD, principal("ghost", "ghost@agencia.com.br"))


def future(days: int) -> datetime:
    return (datetime.now(timezone.utc) + timedelta(days=days)).replace(microsecond=0)


def event_doc(**overrides) -> dict:
    doc = {
        "nome_evento": "Festa de Formatura",
        "data_evento": future(10),
        "horario_inicio": "22:00",
        "horario_fim": "04:00",
        "local": "Clube Atlético",
        "contratante_nome": "Comissão 2026",
        "valor_total": 2000.0,
        "valor_sinal": 500.0,
        "dj_costs": 150.0,
        "conta_que_recebeu": "agencia",
        "status_pagamento": "parcial",
        "dj_id": "dj1",
        "dj_nome": "DJ Alok",
        "payment_proofs": [],
        "deleted": False,
    }
    doc.update(overrides)
    return doc


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        firebase_project_id="test-project",
        firebase_storage_bucket="test-bucket",
        firebase_web_api_key="AIzaTestKey",
        session_sweep_minutes=0,
        session_cookie_secure=False,
    )


@pytest.fixture
def db():
    return FakeFirestore({
        "users": {uid: dict(data) for uid, data in USERS.items()},
        "eventos": {
            "ev1": event_doc(),
            "ev2": event_doc(
                nome_evento="Casamento Silva",
                data_evento=future(3),
                status_pagamento="pago",
                valor_total=3500.0,
                valor_sinal=3500.0,
            ),
            "ev3": event_doc(
                nome_evento="Aniversário 15 anos",
                data_evento=future(20),
                dj_id="dj2",
                dj_nome="DJ Sem Percentual",
                status_pagamento="pendente",
                valor_total=1000.0,
                valor_sinal=0.0,
            ),
            "ev4": event_doc(nome_evento="Show Cancelado", status_pagamento="cancelado"),
            "ev5": event_doc(nome_evento="Evento Removido", deleted=True),
        },
    })


@pytest.fixture
def bucket():
    return FakeBucket()


@pytest.fixture
def identities():
    """Every identity client the app creates, in creation order."""
    return []


@pytest.fixture
def app(settings, db, bucket, identities):
    def factory():
        identity = FakeIdentity(ACCOUNTS)
        identities.append(identity)
        return identity

    return create_app(settings, db=db, bucket=bucket, identity_factory=factory)


@pytest.fixture
def client(app):
    with TestClient(app, follow_redirects=False) as c:
        yield c


@pytest.fixture
def login(client):
    def _login(email, password=PASSWORD):
        return client.post("/auth/login", data={"email": email, "password": password})

    return _login
