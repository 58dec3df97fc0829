"""
API tests for /v1 evaluation and history routes (LLM replaced by a mock)
"""
import json
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from edugrade.core.config import Settings
from edugrade.core.dependencies import build_services
from edugrade.main import create_app

from helpers import MB, MINIMAL_PDF, PNG_MAGIC, make_image, make_report


def _client(config, llm=None) -> TestClient:
    services = build_services(config, llm=llm)
    return TestClient(create_app(config, services=services))


def _files(qp=True, student=True, key=False):
    files = []
    if qp:
        files.append(("question_paper", ("qp.pdf", MINIMAL_PDF, "application/pdf")))
    if key:
        files.append(("answer_key", ("key.png", make_image(), "image/png")))
    if student:
        files.append(("student_sheets", ("s1.jpg", make_image(fmt="JPEG"), "image/jpeg")))
        files.append(("student_sheets", ("s2.png", make_image(), "image/png")))
    return files


@pytest.mark.integration
class TestEvaluateEndpoint:

    def test_evaluation_created_and_stored(self, test_settings, mock_llm):
        client = _client(test_settings, mock_llm)
        res = client.post("/v1/evaluations", files=_files(key=True))

        assert res.status_code == 201, res.text
        data = res.json()
        assert data["report"]["studentInfo"]["name"] == "A"
        assert data["report"]["grades"][0]["questionNumber"] == "1"
        assert data["warnings"] == []
        assert data["rejected_files"] == []
        assert data["qualified"] is True

        content = mock_llm.run_azure_openai.await_args.kwargs["messages"][0]["content"]
        assert [c["type"] for c in content].count("text") == 1 + 4

        history = client.get("/v1/history").json()
        assert [h["id"] for h in history] == [data["id"]]

    def test_oversize_file_reported_others_used(self, test_settings, mock_llm):
        client = _client(test_settings, mock_llm)
        big = ("student_sheets", ("huge.png", PNG_MAGIC + b"\0" * (4 * MB), "image/png"))
        res = client.post("/v1/evaluations", files=_files() + [big])

        assert res.status_code == 201, res.text
        rejected = res.json()["rejected_files"]
        assert len(rejected) == 1
        assert rejected[0]["error_code"] == "FILE_TOO_LARGE"
        assert rejected[0]["details"]["filename"] == "huge.png"

    def test_rejected_only_student_sheet_reported_with_missing_role(self, test_settings, mock_llm):
        client = _client(test_settings, mock_llm)
        files = [
            ("question_paper", ("qp.pdf", MINIMAL_PDF + b"\0" * (2 * MB), "application/pdf")),
            ("student_sheets", ("student.png", PNG_MAGIC + b"\0" * (4 * MB), "image/png")),
        ]
        res = client.post("/v1/evaluations", files=files)

        assert res.status_code == 422
        details = res.json()["details"]
        assert details["missing_roles"] == ["student_sheet"]
        assert [r["details"]["filename"] for r in details["rejected_files"]] == ["student.png"]
        assert details["rejected_files"][0]["error_code"] == "FILE_TOO_LARGE"
        assert "3MB" in details["rejected_files"][0]["error"]
        mock_llm.run_azure_openai.assert_not_called()

    def test_missing_student_sheet(self, test_settings, mock_llm):
        client = _client(test_settings, mock_llm)
        res = client.post("/v1/evaluations", files=_files(student=False))

        assert res.status_code == 422
        body = res.json()
        assert body["error_code"] == "MISSING_REQUIRED_INPUT"
        assert body["details"]["missing_roles"] == ["student_sheet"]
        mock_llm.run_azure_openai.assert_not_called()

    def test_missing_credential(self, no_key_settings, mock_llm):
        client = _client(no_key_settings, mock_llm)
        res = client.post("/v1/evaluations", files=_files())

        assert res.status_code == 503
        assert res.json()["error_code"] == "CREDENTIAL_MISSING"
        mock_llm.run_azure_openai.assert_not_called()

    def test_malformed_report_hides_raw_text(self, test_settings, mock_llm):
        mock_llm.run_azure_openai.return_value = {"content": "I cannot read this page", "usage": {}}
        client = _client(test_settings, mock_llm)
        res = client.post("/v1/evaluations", files=_files())

        assert res.status_code == 502
        body = res.json()
        assert body["error_code"] == "MALFORMED_REPORT"
        assert "I cannot read" not in json.dumps(body)
        assert client.get("/v1/history").json() == []


@pytest.mark.integration
class TestHistoryEndpoints:

    @pytest.fixture
    def client_with_history(self, test_settings, mock_llm):
        services = build_services(test_settings, llm=mock_llm)
        items = [services.history.append(make_report(p)) for p in (40, 60, 80)]
        return TestClient(create_app(test_settings, services=services)), items

    def test_stats(self, client_with_history):
        client, items = client_with_history
        stats = client.get("/v1/history/stats").json()
        assert stats["count"] == 3
        assert stats["meanPercentage"] == 60
        assert stats["mostRecentTimestamp"] == items[-1].timestamp

    def test_get_item(self, client_with_history):
        client, items = client_with_history
        res = client.get(f"/v1/history/{items[0].id}")
        assert res.status_code == 200
        assert res.json()["report"]["percentage"] == 40
        assert client.get("/v1/history/unknown").status_code == 404

    def test_delete_is_idempotent(self, client_with_history):
        client, items = client_with_history
        assert client.delete(f"/v1/history/{items[1].id}").status_code == 204
        assert client.delete(f"/v1/history/{items[1].id}").status_code == 204
        stats = client.get("/v1/history/stats").json()
        assert stats["count"] == 2
        assert stats["meanPercentage"] == 60

    def test_health(self, test_settings):
        res = _client(test_settings).get("/health")
        assert res.json()["credential_configured"] is True


@pytest.mark.integration
class TestUsageEndpoints:

    def test_summary_and_reset(self, test_settings):
        services = build_services(test_settings)
        services.usage.track_usage({"prompt_tokens": 1000, "completion_tokens": 200, "total_tokens": 1200})
        client = TestClient(create_app(test_settings, services=services))

        summary = client.get("/v1/usage").json()
        assert summary["session_info"]["total_calls"] == 1
        assert summary["token_usage"]["total_tokens"] == 1200
        assert summary["cost_breakdown"]["total_cost"] > 0

        assert client.delete("/v1/usage").status_code == 204
        assert client.get("/v1/usage").json()["session_info"]["total_calls"] == 0

    @patch('edugrade.client.bootstrap.AzureOpenAILLM')
    def test_built_llm_reports_to_shared_tracker(self, mock_azure, test_settings):
        services = build_services(test_settings)
        llm = services.client._get_llm()
        assert llm.tracker is services.usage


@pytest.mark.integration
def test_pass_mark_is_configurable(tmp_path, mock_llm):
    mock_llm.run_azure_openai.return_value["content"] = json.dumps(make_report(50).to_wire())
    config = Settings(
        AZURE_OPENAI_API_KEY="test-key",
        HISTORY_PATH=str(tmp_path / "history.json"),
        PASS_MARK_PERCENT=60,
    )
    res = _client(config, mock_llm).post("/v1/evaluations", files=_files())

    assert res.status_code == 201, res.text
    assert res.json()["qualified"] is False
