"""Gemini REST client with failure classification."""

import logging
import math
import re
from typing import Dict, List, Optional, cast

import httpx

from docuvision.errors import FatalError, QuotaExceeded, TransientServiceError
from docuvision.models import mask_key
from docuvision.retry import RetryPolicy

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_OUTPUT_TOKENS = 2048

_RETRY_IN_PATTERN = re.compile(r"Please retry in\s*([0-9]+(?:\.[0-9]+)?)s", re.I)


def _error_payload(response: httpx.Response) -> Dict[str, object]:
    """Return the ``error`` object of a Gemini error body, or an empty dict."""
    try:
        data = response.json()
    except ValueError:
        return {"message": response.text}
    if not isinstance(data, dict):
        return {}
    error_obj = cast(Dict[str, object], data).get("error", {})
    if isinstance(error_obj, dict):
        return cast(Dict[str, object], error_obj)
    return {}


def _details(error: Dict[str, object], type_fragment: str) -> Optional[Dict[str, object]]:
    details = error.get("details")
    if not isinstance(details, list):
        return None
    for detail in details:
        if isinstance(detail, dict) and type_fragment in str(detail.get("@type", "")):
            return cast(Dict[str, object], detail)
    return None


def _retry_after_seconds(error: Dict[str, object]) -> Optional[int]:
    """Read the suggested wait from RetryInfo or the error message."""
    retry_info = _details(error, "RetryInfo")
    if retry_info is not None:
        match = re.match(r"([0-9]+(?:\.[0-9]+)?)s", str(retry_info.get("retryDelay", "")))
        if match:
            return math.ceil(float(match.group(1)))

    match = _RETRY_IN_PATTERN.search(str(error.get("message", "")))
    if match:
        return math.ceil(float(match.group(1)))
    return None


def _quota_metric(error: Dict[str, object]) -> Optional[str]:
    quota_failure = _details(error, "QuotaFailure")
    if quota_failure is None:
        return None
    violations = quota_failure.get("violations")
    if isinstance(violations, list) and violations and isinstance(violations[0], dict):
        metric = violations[0].get("quotaMetric")
        return str(metric) if metric else None
    return None


def _json_body(response: httpx.Response) -> Dict[str, object]:
    try:
        data = response.json()
    except ValueError as exc:
        raise FatalError("Gemini returned a non-JSON body", response.status_code) from exc
    if not isinstance(data, dict):
        raise FatalError("Gemini returned an unexpected body", response.status_code)
    return cast(Dict[str, object], data)


def _extract_text(data: Dict[str, object]) -> Optional[str]:
    candidates = data.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return None
    content = candidates[0].get("content", {}) if isinstance(candidates[0], dict) else {}
    parts = content.get("parts", []) if isinstance(content, dict) else []
    texts: List[str] = [
        part["text"]
        for part in parts
        if isinstance(part, dict) and isinstance(part.get("text"), str) and part["text"]
    ]
    if not texts:
        return None
    return "".join(texts)


class GeminiClient:
    """Single-key caller for the Gemini ``generateContent`` REST endpoint.

    Transient failures (5xx, timeouts, connection errors) are retried on the
    same key according to ``retry_policy``. A 429 is raised as
    :class:`QuotaExceeded` straight away; choosing another key is the caller's
    job.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        model: str = "gemini-2.5-flash",
        api_version: str = "v1beta",
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.http_client = http_client
        self.model = model
        self.api_version = api_version
        self.retry_policy = retry_policy or RetryPolicy(
            retry_on=(TransientServiceError,)
        )

    async def generate(
        self,
        prompt: str,
        api_key: str,
        temperature: float = DEFAULT_TEMPERATURE,
        max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
    ) -> str:
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_output_tokens,
            },
        }
        url = f"/{self.api_version}/models/{self.model}:generateContent"

        async def attempt(_: int) -> str:
            response = await self._send("POST", url, api_key, json=payload)
            text = _extract_text(_json_body(response))
            if text is None:
                raise FatalError("No response text from Gemini", response.status_code)
            return text

        return await self.retry_policy.run(attempt)

    async def list_models(self, api_key: str) -> List[Dict[str, object]]:
        """List the models visible to ``api_key``."""

        async def attempt(_: int) -> List[Dict[str, object]]:
            response = await self._send("GET", f"/{self.api_version}/models", api_key)
            models = _json_body(response).get("models", [])
            if not isinstance(models, list):
                return []
            return [
                {
                    "name": model.get("name"),
                    "displayName": model.get("displayName"),
                    "supportedMethods": model.get("supportedGenerationMethods", []),
                }
                for model in models
                if isinstance(model, dict)
            ]

        return await self.retry_policy.run(attempt)

    async def _send(
        self,
        method: str,
        url: str,
        api_key: str,
        json: Optional[Dict[str, object]] = None,
    ) -> httpx.Response:
        try:
            response = await self.http_client.request(
                method,
                url,
                json=json,
                headers={"x-goog-api-key": api_key},
            )
        except httpx.TimeoutException as exc:
            logger.error("Timeout calling Gemini (key=%s)", mask_key(api_key))
            raise TransientServiceError(f"Gemini request timed out: {exc}") from exc
        except httpx.TransportError as exc:
            logger.error("Request error calling Gemini: %s", exc)
            raise TransientServiceError(f"Gemini request failed: {exc}") from exc
        except httpx.RequestError as exc:
            logger.error("Unusable response from Gemini: %s", exc)
            raise FatalError(f"Gemini request failed: {exc}") from exc

        if response.is_success:
            return response

        error = _error_payload(response)
        message = str(error.get("message") or response.reason_phrase or "Gemini API Error")

        if response.status_code == 429:
            retry_after = _retry_after_seconds(error)
            metric = _quota_metric(error)
            logger.warning(
                "429 from Gemini (key=%s, metric=%s, retry_after=%s)",
                mask_key(api_key),
                metric or "unknown",
                retry_after,
            )
            raise QuotaExceeded(
                f"Quota Exceeded: {metric or 'API quota'}. {message}",
                api_key=api_key,
                retry_after=retry_after,
                quota_metric=metric,
            )

        if response.status_code >= 500:
            logger.warning("Gemini returned %d: %s", response.status_code, message)
            raise TransientServiceError(
                f"Gemini API Error: {response.status_code} - {message}",
                status_code=response.status_code,
            )

        raise FatalError(
            f"Gemini API Error: {response.status_code} - {message}",
            status_code=response.status_code,
        )
