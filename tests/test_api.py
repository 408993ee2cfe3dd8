import inspect
import threading
from fastapi.routing import APIRoute
from fastapi.testclient import TestClient
from invoiceflow.core.config import Settings
from invoiceflow.core.converter import PdfConverter
from invoiceflow.core.errors import ExternalToolFailure
from invoiceflow.db.memory import InMemoryStore
from invoiceflow.main import create_app

from conftest import make_business_data, make_scenario_a_invoice, signup_and_login

class SpyStore(InMemoryStore):
    def __init__(self):
        super().__init__()
        self.calls = []

    def get(self, user_id):
        self.calls.append(("get", user_id))
        return super().get(user_id)

    def put(self, user_id, data):
        self.calls.append(("put", user_id))
        return super().put(user_id, data)

class FailingConverter(PdfConverter):
    def convert(self, document):
        raise ExternalToolFailure("PDF converter exited with status 1: crashed")

def invoice_payload(**overrides):
    return make_scenario_a_invoice(**overrides).model_dump(mode="json", by_alias=True)

def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}

def test_unauthenticated_api_calls_never_touch_store():
    print("Testing session gate...")
    store = SpyStore()
    client = TestClient(create_app(settings=Settings(), store=store))

    for method, path in [
        ("GET", "/api/data"),
        ("PUT", "/api/data"),
        ("POST", "/api/recipients"),
        ("POST", "/api/invoices/generate"),
        ("DELETE", "/api/accounts/main"),
    ]:
        response = client.request(method, path, json={})
        assert response.status_code == 401, f"{method} {path}"
        assert response.json()["error"] == "unauthorized"

    response = client.get("/api/data", headers={"Authorization": "Bearer forged-token"})
    assert response.status_code == 401
    assert store.calls == []
    print("PASSED: 401 before any store access")

def test_signup_login_me_logout(client):
    response = client.post("/auth/signup", json={"email": "Pedro@Example.com", "password": "correct-horse"})
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "User created"}

    response = client.post("/auth/login", json={"email": "pedro@example.com", "password": "correct-horse"})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["user"]["email"] == "pedro@example.com"
    assert body["user"]["displayName"] == "pedro"
    assert "invoiceflow_session" in response.cookies

    # The cookie alone authenticates browser calls
    me = client.get("/auth/me")
    assert me.json()["email"] == "pedro@example.com"
    assert client.get("/api/data").status_code == 200

    client.post("/auth/logout")
    client.cookies.clear()
    assert client.get("/auth/me").json() is None
    assert client.get("/api/data", headers={"Authorization": f"Bearer {body['token']}"}).status_code == 401

def test_duplicate_signup_is_conflict(client):
    signup_and_login(client)
    response = client.post("/auth/signup", json={"email": "pedro@example.com", "password": "another-one"})
    assert response.status_code == 409
    assert response.json()["error"] == "conflict"

def test_signup_validation(client):
    assert client.post("/auth/signup", json={"email": "not-an-email", "password": "correct-horse"}).status_code == 422
    assert client.post("/auth/signup", json={"email": "a@b.es", "password": "short"}).status_code == 422

def test_login_failures(client):
    signup_and_login(client)
    client.cookies.clear()
    wrong_email = client.post("/auth/login", json={"email": "nobody@example.com", "password": "correct-horse"})
    assert wrong_email.status_code == 401
    assert wrong_email.json()["detail"] == "Incorrect email."

    wrong_password = client.post("/auth/login", json={"email": "pedro@example.com", "password": "wrong-horse"})
    assert wrong_password.status_code == 401
    assert wrong_password.json()["detail"] == "Incorrect password."

def test_first_get_seeds_document(client):
    headers = signup_and_login(client)
    data = client.get("/api/data", headers=headers).json()

    assert data["issuer"]["name"] == "Pedro"
    assert data["issuer"]["email"] == "pedro@example.com"
    assert data["recipients"] == []
    assert data["invoices"] == []

def test_put_data_round_trip(client):
    headers = signup_and_login(client)
    payload = make_business_data().to_json_dict()
    payload["uiPreferences"] = {"theme": "dark"}

    response = client.put("/api/data", json=payload, headers=headers)
    assert response.status_code == 200
    assert response.json() == {"success": True}

    stored = client.get("/api/data", headers=headers).json()
    assert stored == payload

def test_post_data_accepts_legacy_keys(client):
    headers = signup_and_login(client)
    legacy = {"issuer": {"nombre": "Pedro", "nif": "77186809M", "irpf": 15}, "recipients": [], "templates": [], "invoices": []}
    assert client.post("/api/data", json=legacy, headers=headers).status_code == 200

    issuer = client.get("/api/data", headers=headers).json()["issuer"]
    assert issuer["name"] == "Pedro"
    assert issuer["taxId"] == "77186809M"
    assert issuer["retentionRate"] == 15

def test_users_do_not_see_each_other(client):
    pedro = signup_and_login(client)
    client.put("/api/data", json=make_business_data().to_json_dict(), headers=pedro)
    client.cookies.clear()

    ana = signup_and_login(client, email="ana@example.com")
    data = client.get("/api/data", headers=ana).json()
    assert data["recipients"] == []
    assert data["issuer"]["email"] == "ana@example.com"

def test_mutation_endpoints(client):
    print("Testing document mutation endpoints...")
    headers = signup_and_login(client)
    client.put("/api/data", json=make_business_data().to_json_dict(), headers=headers)

    data = client.post("/api/recipients", json={"name": "Nuevo SL", "taxId": "B2"}, headers=headers).json()
    assert data["recipients"][-1]["name"] == "Nuevo SL"

    data = client.post("/api/recipients/flexwork/favorite", headers=headers).json()
    assert next(r for r in data["recipients"] if r["id"] == "flexwork")["isFavorite"] is True

    data = client.post("/api/templates", json={"name": "Mensual", "price": 90}, headers=headers).json()
    assert data["templates"][-1]["name"] == "Mensual"

    data = client.post("/api/accounts", json={"id": "extra", "iban": "ES11"}, headers=headers).json()
    assert any(a["id"] == "extra" for a in data["issuer"]["accounts"])

    data = client.delete("/api/accounts/extra", headers=headers).json()
    assert all(a["id"] != "extra" for a in data["issuer"]["accounts"])

    data = client.put("/api/issuer/next-invoice-number", json={"number": 9}, headers=headers).json()
    assert data["issuer"]["nextInvoiceNumber"] == 10

    issuer = dict(data["issuer"], name="Renamed")
    data = client.put("/api/issuer", json=issuer, headers=headers).json()
    assert data["issuer"]["name"] == "Renamed"
    assert len(data["recipients"]) == 3
    print("PASSED: mutations applied to the stored document")

def test_mutation_errors(client):
    headers = signup_and_login(client)
    assert client.post("/api/recipients/ghost/favorite", headers=headers).status_code == 404
    assert client.delete("/api/accounts/ghost", headers=headers).status_code == 404

    client.post("/api/accounts", json={"id": "dup", "iban": "ES1"}, headers=headers)
    response = client.post("/api/accounts", json={"id": "dup", "iban": "ES2"}, headers=headers)
    assert response.status_code == 409

def test_draft_endpoint(client):
    headers = signup_and_login(client)
    client.put("/api/data", json=make_business_data().to_json_dict(), headers=headers)

    response = client.post("/api/invoices/draft", json={"templateId": "template-hub-redes", "number": "15"}, headers=headers)
    assert response.status_code == 200
    draft = response.json()
    assert draft["recipientId"] == "hub-malaga"
    assert draft["number"] == "15"
    assert draft["items"][0]["price"] == 300

    assert client.post("/api/invoices/draft", json={"templateId": "ghost"}, headers=headers).status_code == 404

def test_totals_endpoint(client):
    headers = signup_and_login(client)
    body = {"invoice": invoice_payload(), "businessData": make_business_data().to_json_dict()}
    response = client.post("/api/invoices/totals", json=body, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"subtotal": 250.0, "tax": 52.5, "retention": 37.5, "total": 265.0}

def test_render_endpoint_uses_stored_document(client):
    headers = signup_and_login(client)
    client.put("/api/data", json=make_business_data().to_json_dict(), headers=headers)
    response = client.post("/api/invoices/render", json={"invoice": invoice_payload()}, headers=headers)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert "HUB DE IMPACTO MALAGA, S.L." in response.text
    assert "-37.50€" in response.text

def test_render_rejects_bad_date(client):
    headers = signup_and_login(client)
    payload = invoice_payload()
    payload["date"] = "01/03/2024"
    body = {"invoice": payload}
    response = client.post("/api/invoices/render", json=body, headers=headers)
    assert response.status_code == 422
    assert "YYYY-MM-DD" in response.text

def test_generate_returns_pdf_and_records_invoice(client):
    print("Testing PDF download...")
    headers = signup_and_login(client)
    client.put("/api/data", json=make_business_data().to_json_dict(), headers=headers)
    body = {"invoice": invoice_payload(id=None)}
    response = client.post("/api/invoices/generate", json=body, headers=headers)

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"] == "attachment; filename=Factura_2024-001.pdf"
    assert response.content.startswith(b"%PDF")
    assert int(response.headers["content-length"]) == len(response.content)

    invoice_id = response.headers["x-invoice-id"]
    stored = client.get("/api/data", headers=headers).json()["invoices"]
    assert [inv["id"] for inv in stored] == [invoice_id]
    print("PASSED: PDF streamed and invoice recorded")

def test_generate_with_legacy_snapshot_key(client):
    headers = signup_and_login(client)
    body = {"invoice": invoice_payload(), "globalData": make_business_data().to_json_dict(), "persist": False}
    response = client.post("/api/invoices/generate", json=body, headers=headers)

    assert response.status_code == 200
    assert client.get("/api/data", headers=headers).json()["invoices"] == []

def test_failing_converter_is_502_and_records_nothing():
    store = InMemoryStore()
    client = TestClient(create_app(settings=Settings(), store=store, converter=FailingConverter()))
    headers = signup_and_login(client)
    client.put("/api/data", json=make_business_data().to_json_dict(), headers=headers)

    response = client.post("/api/invoices/generate", json={"invoice": invoice_payload()}, headers=headers)
    assert response.status_code == 502
    assert response.json()["error"] == "external_tool_failure"
    assert client.get("/api/data", headers=headers).json()["invoices"] == []

def test_save_invoice_upserts(client):
    headers = signup_and_login(client)
    client.put("/api/invoices/inv_x", json=invoice_payload(), headers=headers)
    data = client.put("/api/invoices/inv_x", json=invoice_payload(number="2024-002"), headers=headers).json()

    assert len(data["invoices"]) == 1
    assert data["invoices"][0]["id"] == "inv_x"
    assert data["invoices"][0]["number"] == "2024-002"

class SlowConverter(PdfConverter):
    def __init__(self):
        self.started = threading.Event()
        self.release = threading.Event()
        self.finished = False

    def convert(self, document):
        self.started.set()
        self.release.wait(5)
        self.finished = True
        return b"%PDF-1.4 slow"

def test_handlers_run_off_the_event_loop():
    app = create_app(settings=Settings(), store=InMemoryStore())
    blocking = [
        route.path for route in app.routes
        if isinstance(route, APIRoute)
        and route.path.startswith(("/api", "/auth"))
        and inspect.iscoroutinefunction(route.endpoint)
    ]
    assert blocking == []

def test_slow_conversion_does_not_stall_other_requests():
    print("Testing server stays responsive during a PDF export...")
    converter = SlowConverter()
    with TestClient(create_app(settings=Settings(), store=InMemoryStore(), converter=converter)) as client:
        headers = signup_and_login(client)
        results = {}

        def download():
            results["generate"] = client.post(
                "/api/invoices/generate",
                json={"invoice": invoice_payload(), "persist": False},
                headers=headers
            )

        worker = threading.Thread(target=download)
        worker.start()
        assert converter.started.wait(5)

        health = client.get("/health")
        answered_while_converting = not converter.finished
        converter.release.set()
        worker.join(10)

    assert health.status_code == 200
    assert answered_while_converting
    assert results["generate"].status_code == 200
    print("PASSED: /health answered while the converter was busy")
