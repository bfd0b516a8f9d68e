"""Shared fixtures for deployment server tests."""

import io
import os
import zipfile

import pytest
from fastapi.testclient import TestClient

from deploy_server.config import Settings
from deploy_server.main import create_app

TOKEN = "test-token-0123456789"


def make_zip(entries, modes=None):
    """Build a ZIP archive in memory.

    Args:
        entries: List of (name, data) pairs in archive order; data of None
            makes a directory entry (name should end with '/').
        modes: Optional {name: permission bits} stored as Unix attributes.
            Entries not listed carry only a DOS attribute, so no Unix mode.

    Returns:
        Archive bytes.
    """
    modes = modes or {}
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, data in entries:
            info = zipfile.ZipInfo(name)
            if name in modes:
                file_type = 0o040000 if data is None else 0o100000
                info.external_attr = (file_type | modes[name]) << 16
            else:
                # MS-DOS directory / archive flag; a zero attribute would be
                # replaced with 0o600 by zipfile on newer interpreters
                info.external_attr = 0x10 if data is None else 0x20
            zf.writestr(info, b"" if data is None else data)
    return buf.getvalue()


def mark_encrypted(data):
    """Set the 'encrypted' flag bit on every entry of an archive.

    The entry data is left as is; readers refuse the entries because no
    password is supplied.
    """
    buf = bytearray(data)
    for signature, flag_offset in ((b"PK\x03\x04", 6), (b"PK\x01\x02", 8)):
        start = buf.find(signature)
        while start != -1:
            buf[start + flag_offset] |= 0x01
            start = buf.find(signature, start + 4)
    return bytes(buf)


@pytest.fixture
def umask_022():
    """Pin the process umask so permission assertions are predictable."""
    old = os.umask(0o022)
    yield
    os.umask(old)


@pytest.fixture
def deploy_root(tmp_path):
    """Empty, existing deployment root."""
    root = tmp_path / "deploy"
    root.mkdir()
    return root


@pytest.fixture
def settings(deploy_root, tmp_path):
    """Settings pointing at a temporary deployment root."""
    return Settings(
        auth_token=TOKEN,
        deployment_path=str(deploy_root),
        allowed_origins="https://editor.example.com",
        log_path=str(tmp_path / "logs"),
        templates_path=str(tmp_path / "site_templates"),
    )


@pytest.fixture
def client(settings):
    """TestClient for an app built from the temporary settings."""
    return TestClient(create_app(settings))


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {TOKEN}"}
