"""
Pytest configuration and shared fixtures
"""
import json
from unittest.mock import AsyncMock, Mock

import pytest

from edugrade.core.config import Settings
from edugrade.models.document import RawFile

from helpers import MINIMAL_PDF, make_image, make_report_dict


@pytest.fixture
def test_settings(tmp_path):
    """Settings with a credential and a throwaway history file"""
    return Settings(
        AZURE_OPENAI_API_KEY="test-key",
        AZURE_OPENAI_ENDPOINT="https://example.openai.azure.com",
        AZURE_OPENAI_DEPLOYMENT="gpt-test",
        HISTORY_PATH=str(tmp_path / "history.json"),
        MAX_FILE_SIZE_MB=3,
        IMAGE_MAX_WIDTH=2000,
    )


@pytest.fixture
def no_key_settings(tmp_path):
    return Settings(
        AZURE_OPENAI_API_KEY="",
        HISTORY_PATH=str(tmp_path / "history.json"),
    )


@pytest.fixture
def valid_report_json():
    return json.dumps(make_report_dict())


@pytest.fixture
def mock_llm(valid_report_json):
    """Mock LLM client returning a valid report"""
    llm = Mock()
    llm.deployment = "gpt-test"
    llm.run_azure_openai = AsyncMock(return_value={
        "content": valid_report_json,
        "finish_reason": "stop",
        "usage": {"prompt_tokens": 1000, "completion_tokens": 200, "total_tokens": 1200},
    })
    return llm


@pytest.fixture
def png_file():
    return RawFile(filename="page.png", content=make_image(), media_type="image/png")


@pytest.fixture
def jpeg_file():
    return RawFile(filename="page.jpg", content=make_image(fmt="JPEG"), media_type="image/jpeg")


@pytest.fixture
def pdf_file():
    return RawFile(filename="paper.pdf", content=MINIMAL_PDF, media_type="application/pdf")
