"""
Members router tests.

Full request/response cycles through the FastAPI app using TestClient.
Supabase is replaced by FakeSupabase in both cohort.auth and the router, the
authenticated user comes from a dependency override, and the mailer is a
FakeMailer. No network calls are made.
"""

import csv
import io
from unittest.mock import patch

import openpyxl
import pytest
from fastapi.testclient import TestClient

from cohort.auth import get_current_user
from cohort.main import app

from conftest import FakeMailer, FakeSupabase


ADMIN_PROFILE = {
    "id": "p-admin",
    "user_id": "admin-1",
    "company_id": "co-1",
    "role": "admin",
    "is_active": True,
    "email": "admin@acme.com",
    "first_name": "Ada",
    "last_name": "Admin",
    "phone": "",
    "created_at": "2025-03-04T10:00:00+00:00",
}


@pytest.fixture
def db():
    return FakeSupabase(tables={
        "profiles": [dict(ADMIN_PROFILE)],
        "user_invites": [],
        "companies": [{"id": "co-1", "name": "Acme"}],
    })


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def client(db, mailer):
    app.dependency_overrides[get_current_user] = lambda: "admin-1"
    with patch("cohort.auth.supabase_admin", db), \
         patch("cohort.routers.members.supabase", db), \
         patch("cohort.routers.members.InviteMailer.from_env", return_value=mailer):
        yield TestClient(app)
    app.dependency_overrides.clear()


def _upload(client, content: bytes, filename="users.csv", headers=None):
    return client.post(
        "/api/members/import",
        files={"file": (filename, content, "text/csv")},
        headers=headers or {},
    )


# ===========================================================================
# POST /api/members/import
# ===========================================================================

class TestImportEndpoint:

    def test_returns_report(self, client, db, mailer):
        content = "email,nome,sobrenome\nbad-email,Ana,Lima\nbia@x.com,Bia,Souza\n".encode()

        response = _upload(client, content)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Importação concluída"
        results = body["results"]
        assert results["totalProcessed"] == 2
        assert results["successful"] == 1
        assert results["invited"] == 1
        assert results["skipped"] == 0
        assert results["errors"] == [{"line": 2, "email": "bad-email", "error": "Email inválido ou ausente"}]
        assert results["details"] == [{
            "line": 3, "email": "bia@x.com", "status": "invited",
            "firstName": "Bia", "lastName": "Souza",
        }]
        assert mailer.sent[0]["company"] == "Acme"
        assert db.tables["user_invites"][0]["company_id"] == "co-1"

    def test_existing_member_reported_as_duplicate(self, client):
        content = "Email;Nome\nADMIN@acme.com;Ada\n".encode()

        results = _upload(client, content).json()["results"]

        assert results["skipped"] == 1
        assert results["duplicates"] == [{"line": 2, "email": "ADMIN@acme.com"}]
        assert results["details"][0]["status"] == "duplicate"

    def test_all_rows_failing_is_still_200(self, client):
        content = "email,nome\nnope,A\n,B\n".encode()

        response = _upload(client, content)

        assert response.status_code == 200
        assert len(response.json()["results"]["errors"]) == 2

    def test_xlsx_upload(self, client):
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.append(["Email", "Nome"])
        ws.append(["cai@x.com", "Caio"])
        buf = io.BytesIO()
        wb.save(buf)

        response = _upload(client, buf.getvalue(), filename="users.xlsx")

        assert response.json()["results"]["invited"] == 1

    def test_missing_file_is_400(self, client):
        response = client.post("/api/members/import")

        assert response.status_code == 400
        assert response.json()["error"] == "No file provided"

    def test_oversized_file_is_400(self, client):
        with patch("cohort.routers.members._MAX_FILE_SIZE_BYTES", 10):
            response = _upload(client, b"email,nome\na@x.com,Ana\n")

        assert response.status_code == 400
        assert response.json()["error_code"] == "file_too_large"

    def test_non_admin_is_403_before_parsing(self, client, db):
        db.tables["profiles"][0]["role"] = "member"

        with patch("cohort.routers.members.decode_upload") as mock_decode:
            response = _upload(client, b"email,nome\na@x.com,Ana\n")

        assert response.status_code == 403
        assert "error" in response.json()
        mock_decode.assert_not_called()

    def test_company_header_selects_tenant(self, client, db):
        db.tables["profiles"].append({**ADMIN_PROFILE, "id": "p-2", "company_id": "co-2", "role": "owner"})

        _upload(client, b"email,nome\nz@x.com,Zed\n", headers={"X-Company-Id": "co-2"})

        assert db.tables["user_invites"][0]["company_id"] == "co-2"

    def test_unknown_company_header_is_403(self, client):
        response = _upload(client, b"email,nome\nz@x.com,Zed\n", headers={"X-Company-Id": "co-9"})

        assert response.status_code == 403

    def test_unexpected_failure_is_500(self, client):
        with patch("cohort.routers.members.run_import", side_effect=RuntimeError("boom")):
            response = _upload(client, b"email,nome\na@x.com,Ana\n")

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}


class TestImportAuthentication:

    def test_missing_token_is_401(self):
        app.dependency_overrides.clear()
        client = TestClient(app)

        response = client.post("/api/members/import", files={"file": ("u.csv", b"email\n", "text/csv")})

        assert response.status_code == 401
        assert response.json() == {"error": "Not authenticated"}

    def test_cors_preflight_is_answered(self):
        client = TestClient(app)

        response = client.options(
            "/api/members/import",
            headers={
                "Origin": "https://app.example.com",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "authorization,x-company-id",
            },
        )

        assert response.status_code == 200
        assert "access-control-allow-origin" in response.headers


# ===========================================================================
# GET /api/members/import/template and /api/members/export
# ===========================================================================

class TestTemplateEndpoint:

    def test_csv_template(self, client):
        response = client.get("/api/members/import/template")

        assert response.status_code == 200
        assert response.text.splitlines()[0] == "Nome,Sobrenome,Email,Telefone,Cargo"
        assert "template-usuarios.csv" in response.headers["content-disposition"]

    def test_xlsx_template(self, client):
        response = client.get("/api/members/import/template?format=xlsx")

        assert response.status_code == 200
        wb = openpyxl.load_workbook(io.BytesIO(response.content))
        assert [c.value for c in wb.active[1]] == ["Nome", "Sobrenome", "Email", "Telefone", "Cargo"]

    def test_unknown_format_is_rejected(self, client):
        response = client.get("/api/members/import/template?format=pdf")

        assert response.status_code == 422


class TestExportEndpoint:

    def test_exports_company_members(self, client, db):
        db.tables["profiles"].append({
            **ADMIN_PROFILE, "id": "p-other", "company_id": "co-2", "email": "other@x.com",
        })

        response = client.get("/api/members/export")

        assert response.status_code == 200
        rows = list(csv.reader(io.StringIO(response.text)))
        assert rows[0][0] == "ID"
        assert len(rows) == 2
        assert rows[1] == ["p-admin", "Ada", "Admin", "admin@acme.com", "", "admin", "Sim", "04/03/2025"]

    def test_export_db_failure_is_500(self, client):
        with patch("cohort.routers.members.supabase") as mock_db:
            mock_db.table.return_value.select.return_value.eq.return_value.order.return_value \
                .execute.side_effect = Exception("db down")
            response = client.get("/api/members/export")

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to fetch users"}
