"""Description: Bee disease diagnosis service using OpenAI's Responses API."""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from openai import AsyncOpenAI

from models.diagnosis_report import DiagnosisReport
from services.openai.credential_pool import Credential
from services.openai.diagnosis_prompts import build_system_prompt, build_user_prompt
from services.openai.diagnosis_schema import FUNCTION_DEFINITION, FUNCTION_NAME
from services.openai.media_inputs import build_inputs
from services.openai.response_parser import extract_usage, parse_diagnosis

DEFAULT_MODEL = "gpt-5"


def default_client_factory(api_key: str) -> AsyncOpenAI:
    """Create a client that never retries on its own; rotation handles 429s."""
    return AsyncOpenAI(api_key=api_key, max_retries=0)


class AnalysisClient:
    """Submit one image to the model using a given credential.

    One `AsyncOpenAI` client is created lazily per credential and reused.
    Each call is bounded by `timeout_seconds`.
    """

    def __init__(
        self,
        *,
        model: str = DEFAULT_MODEL,
        language: str = "Arabic",
        timeout_seconds: float = 60.0,
        client_factory: Optional[Callable[[str], Any]] = None,
    ) -> None:
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.system_prompt = build_system_prompt()
        self.user_prompt = build_user_prompt(language)
        self._client_factory = client_factory or default_client_factory
        self._clients: Dict[int, Any] = {}

    def _client_for(self, credential: Credential) -> Any:
        client = self._clients.get(credential.index)
        if client is None:
            client = self._client_factory(credential.secret)
            self._clients[credential.index] = client
        return client

    async def analyze(self, image_bytes: bytes, credential: Credential) -> DiagnosisReport:
        """Diagnose a JPEG image with the given credential.

        Raises:
            asyncio.TimeoutError: If the call exceeds the configured timeout.
            MalformedResponse: If the output is missing or violates the schema.
            openai.APIError: Whatever the SDK raises for the request.
        """
        start_time = time.time()
        inputs = build_inputs(self.system_prompt, self.user_prompt, image_bytes=image_bytes)
        response = await asyncio.wait_for(self._create_response(credential, inputs), timeout=self.timeout_seconds)
        report = parse_diagnosis(response, tool_name=FUNCTION_NAME)
        usage = extract_usage(response)
        logging.info(
            "Diagnosis via credential %s in %.2fs (input_tokens=%s output_tokens=%s)",
            credential.masked,
            time.time() - start_time,
            usage["input_tokens"],
            usage["output_tokens"],
        )
        return report

    async def _create_response(self, credential: Credential, inputs: List[Dict[str, Any]]) -> Any:
        """Send the multimodal request to the OpenAI Responses API."""
        client = self._client_for(credential)
        return await client.responses.create(
            model=self.model,
            input=inputs,
            tools=[FUNCTION_DEFINITION],
            tool_choice={"type": "function", "name": FUNCTION_NAME},
        )

    async def aclose(self) -> None:
        """Close every client created so far."""
        for client in self._clients.values():
            close = getattr(client, "close", None)
            if close is None:
                continue
            result = close()
            if asyncio.iscoroutine(result):
                await result
        self._clients.clear()
