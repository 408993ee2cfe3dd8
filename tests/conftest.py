"""Shared pytest fixtures for invoiceflow tests."""

import pytest
from fastapi.testclient import TestClient

from invoiceflow.core.config import Settings
from invoiceflow.core.converter import ReportLabConverter
from invoiceflow.db.memory import InMemoryStore
from invoiceflow.db.sql import SqlStore
from invoiceflow.db.store import UserRecord
from invoiceflow.main import create_app
from invoiceflow.schemas.business import BusinessData
from invoiceflow.schemas.invoice import Invoice


def make_business_data() -> BusinessData:
    return BusinessData.model_validate({
        "issuer": {
            "name": "PEDRO ANTONIO BENITO ROJANO",
            "taxId": "77186809M",
            "address": "AV. JENOFONTE 3 10 2",
            "city": "MALAGA",
            "postalCode": "29010",
            "retentionRate": 15,
            "accounts": [
                {"id": "impacthub", "name": "Impact Hub", "iban": "ES86 0049 4394 2722 1006 5106"},
                {"id": "autonomo", "name": "Autonomo", "iban": "ES94 0049 4596 9123 1004 8347", "swift": "BSCHESMM"},
            ],
        },
        "recipients": [
            {
                "id": "hub-malaga",
                "name": "HUB DE IMPACTO MALAGA, S.L.",
                "taxId": "B86905502",
                "address": "Callejones del Perchel 8, 29002, Malaga",
                "isFavorite": True,
            },
            {
                "id": "flexwork",
                "name": "FLEXWORK SPACES SL.",
                "taxId": "B93612844",
                "address": "Calle Piamonte 23, 28004, Madrid",
                "isFavorite": False,
            },
        ],
        "templates": [
            {
                "id": "template-hub-redes",
                "name": "Impact Hub Redes",
                "recipientId": "hub-malaga",
                "accountId": "impacthub",
                "items": [{"concept": "Marketing digital [MES]", "quantity": 1, "price": 300, "taxValue": 21}],
            },
            {
                "id": "template-horas",
                "name": "Horas",
                "recipientId": "flexwork",
                "accountId": "autonomo",
                "concept": "Horas freelance",
                "price": 583,
            },
        ],
        "invoices": [],
    })


def make_scenario_a_invoice(**overrides) -> Invoice:
    payload = {
        "id": "inv_a",
        "number": "2024-001",
        "date": "2024-03-01",
        "recipientId": "hub-malaga",
        "accountId": "impacthub",
        "items": [
            {"concept": "Consultoria", "quantity": 2, "price": 100, "tax": 21},
            {"concept": "Soporte", "quantity": 1, "price": 50, "tax": 21},
        ],
    }
    payload.update(overrides)
    return Invoice.model_validate(payload)


@pytest.fixture
def business_data():
    return make_business_data()


@pytest.fixture
def scenario_a_invoice():
    return make_scenario_a_invoice()


@pytest.fixture
def user():
    return UserRecord(id="user-1", email="pedro@example.com", display_name="Pedro")


@pytest.fixture
def memory_store():
    return InMemoryStore()


@pytest.fixture(params=["memory", "sql"])
def store(request, tmp_path):
    """Both store backends, so every contract test runs against each."""
    if request.param == "sql":
        sql_store = SqlStore(f"sqlite:///{tmp_path / 'invoiceflow.sqlite'}")
        sql_store.initialize_schema()
        return sql_store
    return InMemoryStore()


@pytest.fixture
def client(memory_store):
    app = create_app(settings=Settings(), store=memory_store, converter=ReportLabConverter())
    return TestClient(app)


def signup_and_login(client: TestClient, email: str = "pedro@example.com", password: str = "correct-horse") -> dict:
    """Create an account and return Authorization headers for it."""
    response = client.post("/auth/signup", json={"email": email, "password": password, "displayName": "Pedro"})
    assert response.status_code == 200, response.text
    response = client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}
