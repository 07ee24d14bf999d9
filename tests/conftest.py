"""Shared pytest fixtures for Node Banana tests."""

import base64
import io
import shutil
import tempfile
from pathlib import Path
from typing import Callable, Generator

import pytest
from PIL import Image

from nodebanana.core.config import NodeBananaConfig
from nodebanana.core.session_log import FileLogSink, SessionLogger
from nodebanana.engine.controller import RunController
from nodebanana.engine.executor import NodeExecutor
from nodebanana.engine.ledger import CostLedger, Ledger
from nodebanana.graph.models import WorkflowDocument
from nodebanana.graph.store import WorkflowStore
from nodebanana.services.artifacts import FileArtifactStore
from nodebanana.services.models import (
    ImageGenerateRequest,
    ImageGenerateResponse,
    TextGenerateRequest,
    TextGenerateResponse,
)

SOURCE_IMAGE = "data:image/png;base64,c291cmNl"
GENERATED_IMAGE = "data:image/png;base64,Z2VuZXJhdGVk"


class FakeImageService:
    """Image service double recording every request.

    Queued responses are returned (or raised, for exceptions) in order; once
    the queue is empty every call succeeds with :data:`GENERATED_IMAGE`.
    """

    def __init__(self, responses=None):
        self.requests: list[ImageGenerateRequest] = []
        self.responses = list(responses or [])

    async def generate(self, request: ImageGenerateRequest) -> ImageGenerateResponse:
        self.requests.append(request)
        if self.responses:
            response = self.responses.pop(0)
            if isinstance(response, BaseException):
                raise response
            return response
        return ImageGenerateResponse(success=True, image=GENERATED_IMAGE)


class FakeTextService:
    """Text service double; echoes the prompt unless responses are queued."""

    def __init__(self, responses=None):
        self.requests: list[TextGenerateRequest] = []
        self.responses = list(responses or [])

    async def generate(self, request: TextGenerateRequest) -> TextGenerateResponse:
        self.requests.append(request)
        if self.responses:
            response = self.responses.pop(0)
            if isinstance(response, BaseException):
                raise response
            return response
        return TextGenerateResponse(success=True, text=f"expanded: {request.prompt}")


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> NodeBananaConfig:
    """Create a test configuration with temporary directories.

    Args:
        temp_dir: Temporary directory from fixture

    Returns:
        NodeBananaConfig instance for testing
    """
    return NodeBananaConfig(
        image_service_url="http://image-service.test/api/generate",
        text_service_url="http://text-service.test/api/llm",
        request_timeout=5,
        data_dir=temp_dir / "data",
        logs_dir=temp_dir / "logs",
        generations_dir=temp_dir / "generations",
        log_max_sessions=3,
    )


@pytest.fixture
def make_png() -> Callable[..., str]:
    """Factory building real PNG data URLs with Pillow.

    Returns:
        Callable ``(width, height, color="red") -> data URL``
    """

    def _make(width: int, height: int, color="red") -> str:
        buffer = io.BytesIO()
        Image.new("RGB", (width, height), color).save(buffer, format="PNG")
        return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")

    return _make


@pytest.fixture
def make_document() -> Callable[..., WorkflowDocument]:
    """Factory building a validated workflow document from wire-format dicts.

    Returns:
        Callable ``(nodes, edges=(), groups=None, workflow_id="wf-test")``
    """

    def _make(nodes, edges=(), groups=None, workflow_id="wf-test") -> WorkflowDocument:
        return WorkflowDocument.model_validate(
            {
                "version": 1,
                "id": workflow_id,
                "name": "test-workflow",
                "nodes": list(nodes),
                "edges": list(edges),
                "groups": groups,
            }
        )

    return _make


@pytest.fixture
def image_service() -> FakeImageService:
    return FakeImageService()


@pytest.fixture
def text_service() -> FakeTextService:
    return FakeTextService()


@pytest.fixture
def store() -> WorkflowStore:
    return WorkflowStore()


@pytest.fixture
def ledger(test_config: NodeBananaConfig) -> Ledger:
    """Ledger persisting costs under the test data directory for workflow ``wf-test``."""
    return Ledger(CostLedger(test_config.cost_ledger_path, workflow_id="wf-test"))


@pytest.fixture
def executor(store, image_service, text_service, ledger, test_config) -> NodeExecutor:
    return NodeExecutor(
        store,
        image_service,
        text_service,
        ledger,
        artifact_store=FileArtifactStore(),
        generations_dir=test_config.generations_dir,
        session_log=SessionLogger(FileLogSink(test_config.logs_dir, test_config.log_max_sessions)),
    )


@pytest.fixture
def controller(store, executor) -> RunController:
    return RunController(store, executor)


@pytest.fixture
def test_client(monkeypatch, test_config, image_service, text_service):
    """FastAPI TestClient whose engine uses the fake services and test directories.

    Yields:
        ``TestClient`` with the lifespan (engine startup/shutdown) running
    """
    from fastapi.testclient import TestClient

    from nodebanana.api import main as api_main

    real_build_engine = api_main.build_engine

    def _build_engine(cfg):
        return real_build_engine(test_config, image_service=image_service, text_service=text_service)

    monkeypatch.setattr(api_main, "config", test_config)
    monkeypatch.setattr(api_main, "build_engine", _build_engine)

    with TestClient(api_main.app) as client:
        yield client
