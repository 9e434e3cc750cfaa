"""AnalysisClient and response parsing tests with a fake OpenAI client."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from conftest import tool_response
from models.diagnosis_report import Severity
from services.openai.analysis_client import AnalysisClient
from services.openai.credential_pool import CredentialPool
from services.openai.diagnosis_schema import FUNCTION_NAME
from services.openai.response_parser import MalformedResponse, parse_diagnosis


def _fake_factory(created, response):
    def factory(api_key):
        client = SimpleNamespace(api_key=api_key, responses=SimpleNamespace(create=AsyncMock(return_value=response)))
        created.append(client)
        return client

    return factory


class TestParseDiagnosis:
    def test_valid_tool_call(self, sample_report):
        report = parse_diagnosis(tool_response(sample_report), tool_name=FUNCTION_NAME)
        assert report.subject_detected is True
        assert report.severity is Severity.MODERATE
        assert report.recommended_treatment[0] == "Oxalic acid treatment"

    def test_missing_tool_call(self):
        with pytest.raises(MalformedResponse):
            parse_diagnosis(SimpleNamespace(output=[]), tool_name=FUNCTION_NAME)

    def test_schema_violation(self, sample_report):
        bad = dict(sample_report, severity="APOCALYPTIC")
        with pytest.raises(MalformedResponse):
            parse_diagnosis(tool_response(bad), tool_name=FUNCTION_NAME)

    def test_invalid_json_arguments(self):
        call = SimpleNamespace(type="function_call", name=FUNCTION_NAME, arguments="{oops")
        with pytest.raises(MalformedResponse):
            parse_diagnosis(SimpleNamespace(output=[call]), tool_name=FUNCTION_NAME)


class TestAnalysisClient:
    @pytest.mark.asyncio
    async def test_analyze_uses_credential_client(self, jpeg_bytes, sample_report):
        created = []
        client = AnalysisClient(model="gpt-5", client_factory=_fake_factory(created, tool_response(sample_report)))
        pool = CredentialPool(["key-one", "key-two"])

        report = await client.analyze(jpeg_bytes, pool.current())
        await client.analyze(jpeg_bytes, pool.current())
        await client.analyze(jpeg_bytes, pool.rotate())

        assert report.condition_name == "Varroa mite infestation"
        assert [c.api_key for c in created] == ["key-one", "key-two"]
        kwargs = created[0].responses.create.await_args.kwargs
        assert kwargs["model"] == "gpt-5"
        assert kwargs["tool_choice"] == {"type": "function", "name": FUNCTION_NAME}
        image_part = kwargs["input"][-1]["content"][0]
        assert image_part["image_url"].startswith("data:image/jpeg;base64,")

    @pytest.mark.asyncio
    async def test_prompt_requests_language(self):
        client = AnalysisClient(language="French", client_factory=lambda key: None)
        assert "French" in client.user_prompt

    @pytest.mark.asyncio
    async def test_timeout(self, jpeg_bytes):
        async def slow_create(**kwargs):
            await asyncio.sleep(1)

        def factory(api_key):
            return SimpleNamespace(responses=SimpleNamespace(create=slow_create))

        client = AnalysisClient(timeout_seconds=0.01, client_factory=factory)
        with pytest.raises(asyncio.TimeoutError):
            await client.analyze(jpeg_bytes, CredentialPool(["k"]).current())
