"""End-to-end tests for the HTTP API in deploy_server/main.py."""

from datetime import datetime
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from deploy_server import __version__
from deploy_server.config import Settings
from deploy_server.main import create_app

from .conftest import TOKEN, make_zip, mark_encrypted


class TestAuthentication:
    """Tests for the token gate in front of every route."""

    def test_health_with_token(self, client, auth_headers):
        response = client.get("/health", headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Server is running properly"}
        assert response.headers["content-type"] == "application/json"

    def test_health_without_token(self, client):
        response = client.get("/health")
        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Invalid authentication"}

    def test_wrong_token(self, client):
        response = client.get("/health", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid token"

    @pytest.mark.parametrize("path", ["/deploy", "/info", "/does-not-exist"])
    def test_all_routes_protected(self, client, path):
        assert client.post(path).status_code == 401
        assert client.get(path).status_code == 401

    def test_rejected_deploy_writes_nothing(self, client, deploy_root):
        response = client.post(
            "/deploy",
            data={"export_type": "hugo"},
            files=[("files", ("a.txt", b"x", "text/plain"))],
            headers={"Authorization": "Bearer wrong"},
        )
        assert response.status_code == 401
        assert list(deploy_root.iterdir()) == []


class TestCors:
    """Tests for CORS headers and preflight handling."""

    def test_headers_on_success(self, client, auth_headers):
        response = client.get("/health", headers=auth_headers)
        assert response.headers["access-control-allow-origin"] == "https://editor.example.com"
        assert response.headers["access-control-allow-methods"] == "POST, GET, OPTIONS"
        assert response.headers["access-control-allow-headers"] == "Content-Type, Authorization"

    def test_headers_on_rejection(self, client):
        response = client.get("/health")
        assert response.status_code == 401
        assert response.headers["access-control-allow-origin"] == "https://editor.example.com"

    def test_preflight(self, client):
        """OPTIONS is answered without credentials."""
        response = client.options("/deploy")
        assert response.status_code == 200
        assert response.content == b""
        assert response.headers["access-control-allow-origin"] == "https://editor.example.com"

    def test_headers_on_unexpected_error(self, client, auth_headers):
        """An unhandled exception still yields the JSON envelope with CORS headers."""
        with patch("deploy_server.intake.UploadIntake.handle", side_effect=RuntimeError("boom")):
            response = client.post(
                "/deploy",
                files=[("files", ("a.txt", b"a", "text/plain"))],
                headers=auth_headers,
            )

        assert response.status_code == 500
        assert response.headers["content-type"] == "application/json"
        assert response.json() == {"success": False, "message": "Internal server error"}
        assert response.headers["access-control-allow-origin"] == "https://editor.example.com"

    def test_no_headers_when_unconfigured(self, deploy_root, auth_headers):
        client = TestClient(create_app(Settings(auth_token=TOKEN, deployment_path=str(deploy_root))))
        response = client.get("/health", headers=auth_headers)
        assert "access-control-allow-origin" not in response.headers


class TestDeployUpload:
    """Tests for POST /deploy in normal upload mode."""

    def test_two_files(self, client, auth_headers, deploy_root):
        response = client.post(
            "/deploy",
            data={"export_type": "hugo"},
            files=[
                ("files", ("a.txt", b"a" * 10, "text/plain")),
                ("files", ("b.txt", b"b" * 20, "text/plain")),
            ],
            headers=auth_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["files"] == [
            {"path": "a.txt", "content_type": "text/plain", "size": 10},
            {"path": "b.txt", "content_type": "text/plain", "size": 20},
        ]
        assert (deploy_root / "hugo" / "a.txt").read_bytes() == b"a" * 10
        assert (deploy_root / "hugo" / "b.txt").read_bytes() == b"b" * 20

    def test_relative_path(self, client, auth_headers, deploy_root):
        response = client.post(
            "/deploy",
            data={"export_type": "jekyll", "relative_path": "_posts"},
            files=[("files", ("hello.md", b"# hello", "text/markdown"))],
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json()["files"][0]["path"] == "_posts/hello.md"
        assert (deploy_root / "jekyll" / "_posts" / "hello.md").exists()

    def test_traversal_relative_path(self, client, auth_headers, deploy_root):
        response = client.post(
            "/deploy",
            data={"relative_path": "../../etc"},
            files=[("files", ("a.txt", b"x", "text/plain"))],
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Invalid relative path"}
        assert list(deploy_root.iterdir()) == []

    def test_invalid_export_type(self, client, auth_headers):
        response = client.post(
            "/deploy",
            data={"export_type": "../x"},
            files=[("files", ("a.txt", b"x", "text/plain"))],
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid export type"

    def test_no_files(self, client, auth_headers):
        response = client.post("/deploy", data={"export_type": "hugo"}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "No files sent"}

    def test_directory_failure_is_500(self, client, auth_headers, deploy_root):
        (deploy_root / "hugo").write_text("in the way")

        response = client.post(
            "/deploy",
            files=[("files", ("a.txt", b"x", "text/plain"))],
            headers=auth_headers,
        )

        assert response.status_code == 500
        assert response.json()["message"].startswith("Error creating deployment directory")

    def test_wrong_method(self, client, auth_headers):
        response = client.get("/deploy", headers=auth_headers)
        assert response.status_code == 405
        assert response.json()["success"] is False

    def test_body_too_large(self, deploy_root, auth_headers):
        settings = Settings(auth_token=TOKEN, deployment_path=str(deploy_root), max_body_size=1024)
        client = TestClient(create_app(settings))

        response = client.post(
            "/deploy",
            files=[("files", ("big.bin", b"x" * 4096, "application/octet-stream"))],
            headers=auth_headers,
        )

        assert response.status_code == 413
        assert response.json() == {"success": False, "message": "Request body too large"}
        assert list(deploy_root.iterdir()) == []

    def test_chunked_body_rejected(self, deploy_root, auth_headers):
        """A body without Content-Length is refused before it is parsed."""
        settings = Settings(auth_token=TOKEN, deployment_path=str(deploy_root), max_body_size=1000)
        client = TestClient(create_app(settings))
        boundary = "deploy-boundary"

        def body():
            yield (
                f"--{boundary}\r\n"
                'Content-Disposition: form-data; name="files"; filename="big.bin"\r\n'
                "Content-Type: application/octet-stream\r\n\r\n"
            ).encode()
            for _ in range(50):
                yield b"x" * 1000
            yield f"\r\n--{boundary}--\r\n".encode()

        response = client.post(
            "/deploy",
            content=body(),
            headers={**auth_headers, "Content-Type": f"multipart/form-data; boundary={boundary}"},
        )

        assert response.status_code == 411
        assert response.json() == {"success": False, "message": "Content-Length header required"}
        assert list(deploy_root.iterdir()) == []


class TestDeployInit:
    """Tests for POST /deploy with init=true."""

    def test_template_zip(self, client, auth_headers, deploy_root):
        archive = make_zip([("index.html", b"<html></html>"), ("assets/style.css", b"body{}")])

        response = client.post(
            "/deploy",
            data={"export_type": "hugo", "init": "true"},
            files=[("template_zip", ("site.zip", archive, "application/zip"))],
            headers=auth_headers,
        )

        assert response.status_code == 200
        body = response.json()
        site = deploy_root / "hugo"
        assert body["success"] is True
        assert body["message"] == f"Successfully initialized hugo site template at {site}"
        assert "files" not in body
        assert (site / "index.html").read_bytes() == b"<html></html>"
        assert (site / "assets" / "style.css").read_bytes() == b"body{}"

    def test_zip_slip(self, client, auth_headers, deploy_root):
        archive = make_zip([("../../evil.sh", b"rm -rf /")])

        response = client.post(
            "/deploy",
            data={"init": "true"},
            files=[("template_zip", ("site.zip", archive, "application/zip"))],
            headers=auth_headers,
        )

        assert response.status_code == 500
        assert response.json()["message"] == "Error extracting ZIP file: illegal file path: ../../evil.sh"
        assert not (deploy_root.parent / "evil.sh").exists()

    def test_encrypted_template_zip(self, client, auth_headers):
        """A password-protected archive fails with the JSON error envelope."""
        archive = mark_encrypted(make_zip([("index.html", b"<html></html>")]))

        response = client.post(
            "/deploy",
            data={"init": "true"},
            files=[("template_zip", ("site.zip", archive, "application/zip"))],
            headers=auth_headers,
        )

        assert response.status_code == 500
        assert response.headers["content-type"] == "application/json"
        assert response.json()["success"] is False
        assert response.json()["message"].startswith("Error extracting ZIP file: corrupt archive entry index.html")
        assert response.headers["access-control-allow-origin"] == "https://editor.example.com"

    def test_init_must_be_true(self, client, auth_headers, deploy_root):
        """Any init value other than 'true' is a normal upload."""
        archive = make_zip([("index.html", b"x")])

        response = client.post(
            "/deploy",
            data={"init": "yes"},
            files=[("template_zip", ("site.zip", archive, "application/zip"))],
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json()["message"] == "No files sent"


class TestInfo:
    """Tests for GET /info."""

    def test_info(self, client, auth_headers, settings):
        response = client.get("/info", headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["deployment_path"] == settings.deployment_path
        assert body["version"] == __version__
        parsed = datetime.fromisoformat(body["server_time"])
        assert parsed.tzinfo is not None
