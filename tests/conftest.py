"""Shared test fixtures and configuration."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from unity_docs_mcp.config import Settings
from unity_docs_mcp.domain.model import DocumentInput, DocumentType
from unity_docs_mcp.search.sqlite_storage import SqliteDocumentStore


# Complete test environment that overrides every config value read from env
TEST_ENV = {
    "DEFAULT_VERSION": "6000.1",
    "SUPPORTED_VERSIONS": "6000.0,6000.1,6000.2,6000.3",
    "DATABASE_PATH": "",
    "HTTP_TIMEOUT": "30",
    "READ_PAGE_SIZE": "2000",
    "MAX_CODE_EXAMPLES": "3",
    "PROGRESS_INTERVAL": "100",
    "LOG_LEVEL": "info",
    "LOG_JSON": "true",
    "MCP_MODE": "debug",
    # Proxy settings - ensure they're cleared for tests
    "http_proxy": "",
    "https_proxy": "",
    "all_proxy": "",
    "no_proxy": "",
}


RIGIDBODY_OVERVIEW_HTML = """<!DOCTYPE html>
<html>
<head><title>Rigidbody overview - Unity 6000.1 Documentation</title></head>
<body>
<nav>Manual navigation sidebar links</nav>
<div class="content">
  <h1>Rigidbody overview</h1>
  <p>A Rigidbody component places a GameObject under the control of the physics engine.</p>
  <h2>Mass and drag</h2>
  <p>Use the mass property to control how a Rigidbody reacts to collisions.</p>
  <h2>Kinematic motion</h2>
  <p>A kinematic Rigidbody is not driven by forces.</p>
  <pre><code>rb.isKinematic = true;</code></pre>
</div>
<footer>Copyright Unity Technologies</footer>
</body>
</html>
"""

RIGIDBODY_COMPONENT_HTML = """<html>
<head><title>Rigidbody component reference | Unity Documentation</title></head>
<body>
<div class="content">
  <p>Properties of the Rigidbody component: mass, drag, angular drag and gravity.</p>
</div>
</body>
</html>
"""

COLLIDERS_HTML = """<html>
<body>
<div class="content">
  <h1>Colliders</h1>
  <p>Collider shapes define the physical boundary of a GameObject.</p>
</div>
</body>
</html>
"""

SCRIPT_RIGIDBODY_HTML = """<html>
<body>
<div class="content">
  <h1>Rigidbody</h1>
  <p>class in UnityEngine. Control of an object's position through physics simulation.</p>
  <pre><code>Rigidbody rb = GetComponent&lt;Rigidbody&gt;();</code></pre>
  <pre><code>rb.AddForce(Vector3.up);</code></pre>
</div>
</body>
</html>
"""

SCRIPT_ADDFORCE_HTML = """<html>
<body>
<div class="content">
  <h1>Rigidbody.AddForce</h1>
  <p>Adds a force to the Rigidbody.</p>
</div>
</body>
</html>
"""


class FrozenClock:
    """Deterministic clock for store timestamps."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 1.0) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    """Set test defaults and keep any local .env file out of reach."""
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(data_dir=tmp_path / "data")


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def store(tmp_path, clock):
    """Open SQLite store on a temp file, closed after the test."""
    document_store = SqliteDocumentStore(tmp_path / "unity.db", clock=clock)
    document_store.open()
    yield document_store
    document_store.close()


@pytest.fixture
def make_document():
    """Factory for DocumentInput with sensible defaults."""

    def _make(
        file_path: str = "Manual/Page.html",
        *,
        title: str = "Page",
        content: str = "Page content",
        version: str = "6000.1",
        doc_type: DocumentType = DocumentType.MANUAL,
        raw_markup: str | None = None,
        package_name: str | None = None,
        package_version: str | None = None,
        doc_id: str | None = None,
    ) -> DocumentInput:
        scope = package_name or version
        return DocumentInput(
            id=doc_id or f"{scope}:{file_path}"[:64],
            version=version,
            type=doc_type,
            title=title,
            content=content,
            raw_markup=raw_markup if raw_markup is not None else f"<h1>{title}</h1><p>{content}</p>",
            file_path=file_path,
            url=f"unity://{version}/{file_path}",
            package_name=package_name,
            package_version=package_version,
        )

    return _make


@pytest.fixture
def sample_pages() -> dict[str, str]:
    """Relative path -> HTML for a small Unity documentation tree."""
    return {
        "Manual/RigidbodiesOverview.html": RIGIDBODY_OVERVIEW_HTML,
        "Manual/class-Rigidbody.html": RIGIDBODY_COMPONENT_HTML,
        "Manual/Colliders.html": COLLIDERS_HTML,
        "ScriptReference/Rigidbody.html": SCRIPT_RIGIDBODY_HTML,
        "ScriptReference/Rigidbody.AddForce.html": SCRIPT_ADDFORCE_HTML,
    }


@pytest.fixture
def docs_tree(tmp_path, sample_pages) -> Path:
    """Extracted documentation directory populated with ``sample_pages``."""
    root = tmp_path / "extracted" / "unity-6000.1"
    for relative_path, html in sample_pages.items():
        target = root / relative_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(html, encoding="utf-8")
    (root / "Manual" / "notes.txt").write_text("not documentation", encoding="utf-8")
    return root
