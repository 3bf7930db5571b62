"""End-to-end tests for serving declared endpoints over HTTP."""

import base64
import shutil
import tempfile
from datetime import datetime

from fastapi.testclient import TestClient

from dynapi.api.server import Server

ADMIN_PASSWORD = "correct-horse"

GREET = {
    "path": "/greet",
    "method": "GET",
    "parameterSource": "query",
    "parameters": [{"name": "lang", "required": True}],
    "responseType": "json",
    "responses": [
        {"condition": "query.lang == 'fr'", "data": {"msg": "Bonjour"}},
        {"condition": None, "data": {"msg": "Hello"}},
    ],
}


class DynamicServerTestCase:
    """Spin up a server over a temporary data directory."""

    seed_defaults = False
    body_limit = 50 * 1024 * 1024

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.server = Server(
            data_dir=self.temp_dir,
            seed_defaults=self.seed_defaults,
            body_limit=self.body_limit,
        )
        self.client = TestClient(self.server.get_app())
        self.client.__enter__()
        response = self.client.post("/api/admin/setup", json={"password": ADMIN_PASSWORD})
        assert response.status_code == 200

    def teardown_method(self):
        self.client.__exit__(None, None, None)
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def declare(self, declaration):
        response = self.client.post("/api/admin/endpoints", json=declaration)
        assert response.status_code == 200, response.text
        return response.json()["endpoint"]


class TestGreetExample(DynamicServerTestCase):
    """The canonical conditional-response example."""

    def setup_method(self):
        super().setup_method()
        self.declare(GREET)

    def test_condition_selects_french(self):
        response = self.client.get("/greet?lang=fr")
        assert response.status_code == 200
        assert response.json() == {"msg": "Bonjour"}

    def test_default_rule(self):
        response = self.client.get("/greet", params={"lang": "de"})
        assert response.json() == {"msg": "Hello"}

    def test_missing_required_parameter(self):
        response = self.client.get("/greet")
        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "bad_request"
        assert body["details"] == {"parameter": "lang", "source": "query"}
        assert body["path"] == "/greet"
        assert body["request_id"] == response.headers["x-request-id"]

    def test_wrong_method_is_not_found(self):
        assert self.client.post("/greet?lang=fr").status_code == 404


class TestDynamicDispatch(DynamicServerTestCase):
    """Protection, parameters, templates and response types over HTTP."""

    def test_unknown_path(self):
        response = self.client.get("/nowhere")
        assert response.status_code == 404
        assert response.json()["error_code"] == "not_found"

    def test_reserved_paths_are_not_dynamic(self):
        assert self.client.get("/admin").status_code == 404
        assert self.client.get("/api/admin/unknown").status_code == 404
        assert self.client.get("/health").json()["status"] == "ok"

    def test_protected_endpoint(self):
        self.declare(
            {
                "path": "/secure",
                "method": "POST",
                "protected": True,
                "token": "tok-123",
                "parameterSource": "body",
                "parameters": [{"name": "id", "required": True}],
                "responses": [{"data": {"id": "{{body.id}}"}}],
            }
        )
        missing = self.client.post("/secure", json={})
        assert missing.status_code == 401
        assert missing.json()["message"] == "Authorization required"

        wrong = self.client.post(
            "/secure", content=b"{not json", headers={
                "Authorization": "Bearer nope", "Content-Type": "application/json"
            }
        )
        assert wrong.status_code == 401
        assert wrong.json()["message"] == "Invalid token"

        headers = {"Authorization": "Bearer tok-123"}
        assert self.client.post("/secure", json={}, headers=headers).status_code == 400
        ok = self.client.post("/secure", json={"id": 7}, headers=headers)
        assert ok.json() == {"id": "7"}

    def test_malformed_json_body_after_guard(self):
        self.declare({"path": "/json", "method": "POST", "responses": [{"data": {}}]})
        response = self.client.post(
            "/json", content=b"{oops", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400

    def test_form_body(self):
        self.declare(
            {
                "path": "/form",
                "method": "POST",
                "parameterSource": "body",
                "parameters": [{"name": "name", "required": True}],
                "responseType": "text",
                "responses": [{"text": "Hi {{body.name}}"}],
            }
        )
        response = self.client.post("/form", data={"name": "Ada"})
        assert response.text == "Hi Ada"

    def test_header_parameters_and_conditions(self):
        self.declare(
            {
                "path": "/tier",
                "method": "ANY",
                "parameterSource": "header",
                "parameters": [{"name": "X-Tier", "required": True}],
                "responses": [
                    {"condition": "headers.x-tier == 'gold' && method == 'PUT'", "data": "vip"},
                    {"data": "standard"},
                ],
            }
        )
        assert self.client.put("/tier", headers={"X-Tier": "gold"}).json() == "vip"
        assert self.client.get("/tier", headers={"X-Tier": "gold"}).json() == "standard"
        response = self.client.get("/tier")
        assert response.json()["details"] == {"parameter": "X-Tier", "source": "header"}

    def test_mixed_parameters(self):
        self.declare(
            {
                "path": "/mixed",
                "method": "POST",
                "parameterSource": "mixed",
                "parameters": [{"name": "key", "required": True}],
                "responses": [{"data": {"q": "{{query.key}}", "b": "{{body.key}}"}}],
            }
        )
        assert self.client.post("/mixed", json={"key": "b"}).json() == {"q": "", "b": "b"}
        assert self.client.post("/mixed?key=q").json() == {"q": "q", "b": ""}
        assert self.client.post("/mixed", json={"key": ""}).status_code == 400

    def test_text_templates(self):
        self.declare(
            {
                "path": "/clock",
                "method": "GET",
                "responseType": "text",
                "responses": [{"text": "{{timestamp}}|{{method}}|{{path}}|{{query.none}}"}],
            }
        )
        response = self.client.get("/clock?x=1")
        assert response.headers["content-type"].startswith("text/plain")
        timestamp, method, path, missing = response.text.split("|")
        datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
        assert (method, path, missing) == ("GET", "/clock?x=1", "")

    def test_binary_and_redirect(self):
        self.declare(
            {
                "path": "/pixel",
                "method": "GET",
                "responseType": "image",
                "responses": [
                    {
                        "base64": base64.b64encode(b"GIF89a").decode(),
                        "contentType": "image/gif",
                        "fileName": "pixel.gif",
                    }
                ],
            }
        )
        self.declare(
            {
                "path": "/go",
                "method": "GET",
                "responseType": "redirect",
                "responses": [{"redirectUrl": "https://example.com/"}],
            }
        )
        pixel = self.client.get("/pixel")
        assert pixel.content == b"GIF89a"
        assert pixel.headers["content-type"] == "image/gif"
        assert pixel.headers["content-disposition"] == 'inline; filename="pixel.gif"'

        redirect = self.client.get("/go", follow_redirects=False)
        assert redirect.status_code == 302
        assert redirect.headers["location"] == "https://example.com/"

    def test_uploaded_asset_is_served(self):
        upload = self.client.post(
            "/api/admin/assets", files={"file": ("logo.png", b"\x89PNG", "image/png")}
        )
        asset = upload.json()["asset"]
        self.declare(
            {
                "path": "/logo",
                "method": "GET",
                "responseType": "image",
                "responses": [{"assetPath": asset["path"]}],
            }
        )
        response = self.client.get("/logo")
        assert response.content == b"\x89PNG"
        assert response.headers["content-type"] == "image/png"

    def test_binary_without_source_is_internal_error(self):
        self.declare(
            {"path": "/broken", "method": "GET", "responseType": "binary", "responses": [{}]}
        )
        response = self.client.get("/broken")
        assert response.status_code == 500
        assert response.json()["message"] == "Binary response not configured"

    def test_changes_apply_to_the_next_request(self):
        created = self.declare({"path": "/live", "method": "GET", "responses": [{"data": 1}]})
        assert self.client.get("/live").json() == 1

        self.client.put(
            f"/api/admin/endpoints/{created['id']}", json={"responses": [{"data": 2}]}
        )
        assert self.client.get("/live").json() == 2

        self.client.put(f"/api/admin/endpoints/{created['id']}", json={"enabled": False})
        assert self.client.get("/live").status_code == 404

        self.client.delete(f"/api/admin/endpoints/{created['id']}")
        assert self.client.get("/live").status_code == 404


class TestBodyLimit(DynamicServerTestCase):
    """Request bodies are bounded whether or not they declare a length."""

    body_limit = 64

    def setup_method(self):
        super().setup_method()
        self.declare(
            {
                "path": "/upload",
                "method": "POST",
                "parameterSource": "body",
                "responseType": "text",
                "responses": [{"text": "Hi {{body.name}}"}],
            }
        )

    def test_declared_length_over_limit(self):
        response = self.client.post("/upload", content=b"x" * 100)
        assert response.status_code == 413
        assert response.json()["error_code"] == "payload_too_large"

    def test_chunked_body_over_limit(self):
        response = self.client.post("/upload", content=iter([b"a" * 40, b"b" * 40]))
        assert response.status_code == 413
        assert response.json()["message"] == "Request body too large"

    def test_chunked_form_within_limit(self):
        response = self.client.post(
            "/upload",
            content=iter([b"name=", b"Ada"]),
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        assert response.status_code == 200
        assert response.text == "Hi Ada"


class TestSeededDefaults(DynamicServerTestCase):
    """Default endpoints seeded into a fresh data directory."""

    seed_defaults = True

    def test_ping_and_status(self):
        assert self.client.get("/ping").json() == {"message": "pong"}
        status = self.client.get("/status").json()
        assert status["status"] == "ok"
        assert status["time"].endswith("Z")

    def test_echo_requires_its_token(self):
        assert self.client.post("/echo", json={"a": 1}).status_code == 401

        endpoints = self.client.get("/api/admin/endpoints").json()["endpoints"]
        echo = next(e for e in endpoints if e["path"] == "/echo")
        response = self.client.post(
            "/echo", json={"a": 1}, headers={"Authorization": f"Bearer {echo['token']}"}
        )
        assert response.json() == {"echo": '{"a":1}'}


class TestExportImportBehaviour(DynamicServerTestCase):
    """Export from one data directory, import into another, same responses."""

    def test_round_trip_preserves_behaviour(self):
        self.declare(GREET)
        upload = self.client.post(
            "/api/admin/assets", files={"file": ("a.pdf", b"%PDF-1.4", "application/pdf")}
        )
        asset_id = upload.json()["asset"]["id"]
        self.declare(
            {
                "path": "/doc",
                "method": "GET",
                "responseType": "binary",
                "responses": [{"assetId": asset_id}],
            }
        )
        exported = self.client.get("/api/admin/export")
        assert "attachment" in exported.headers["content-disposition"]

        other_dir = tempfile.mkdtemp()
        try:
            other = Server(data_dir=other_dir, seed_defaults=False)
            with TestClient(other.get_app()) as client:
                client.post("/api/admin/setup", json={"password": ADMIN_PASSWORD})
                imported = client.post("/api/admin/import", json=exported.json())
                assert imported.status_code == 200

                for url in ("/greet?lang=fr", "/greet?lang=en", "/greet", "/doc"):
                    mine = self.client.get(url)
                    theirs = client.get(url)
                    assert theirs.status_code == mine.status_code
                    if mine.status_code == 200:
                        assert theirs.content == mine.content
                        assert theirs.headers["content-type"] == mine.headers["content-type"]
        finally:
            shutil.rmtree(other_dir, ignore_errors=True)
