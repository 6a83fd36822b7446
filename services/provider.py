# services/provider.py
from dataclasses import dataclass, field

import httpx
import structlog

from models.project import ProjectConfig
from services.errors import ProviderError, ProviderTimeout

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 40.0


@dataclass(frozen=True)
class ProviderParams:
    base_url: str
    model: str
    token: str
    temperature: float
    top_p: float
    max_tokens: int

    @classmethod
    def from_project(cls, project: ProjectConfig) -> "ProviderParams":
        return cls(
            base_url=project.base_url,
            model=project.model,
            token=project.token,
            temperature=project.temperature,
            top_p=project.top_p,
            max_tokens=project.max_tokens,
        )


@dataclass(frozen=True)
class Completion:
    content: str
    role: str = "assistant"
    finish_reason: str | None = None
    model: str | None = None
    input_tokens: int = 0
    output_tokens: int = 0
    raw: dict = field(default_factory=dict, compare=False, repr=False)


# ---------------------------
# Wire helpers
# ---------------------------
def resolve_provider_url(base_url: str) -> str:
    base_url = base_url.rstrip("/")
    if base_url.endswith("/chat/completions"):
        return base_url
    return base_url + "/chat/completions"


def build_request_payload(conversation, params: ProviderParams) -> dict:
    return {
        "model": params.model,
        "messages": [m.to_dict() for m in conversation],
        "temperature": params.temperature,
        "top_p": params.top_p,
        "max_tokens": params.max_tokens,
    }


def extract_tokens(data: dict) -> tuple[int, int]:
    """Extract input and output token counts, whatever the provider calls them."""
    usage = data.get("usage") or data.get("usageMetadata") or {}
    in_tokens = (
        usage.get("prompt_tokens")
        or usage.get("input_tokens")
        or usage.get("promptTokenCount")
        or 0
    )
    out_tokens = (
        usage.get("completion_tokens")
        or usage.get("output_tokens")
        or usage.get("candidatesTokenCount")
        or 0
    )
    return int(in_tokens), int(out_tokens)


def parse_response_output(data: dict) -> Completion:
    try:
        choice = data["choices"][0]
        message = choice["message"]
        content = message.get("content") or ""
    except (KeyError, IndexError, TypeError, AttributeError) as e:
        raise ProviderError(502, "malformed completion response") from e

    in_tokens, out_tokens = extract_tokens(data)
    return Completion(
        content=content,
        role=message.get("role") or "assistant",
        finish_reason=choice.get("finish_reason"),
        model=data.get("model"),
        input_tokens=in_tokens,
        output_tokens=out_tokens,
        raw=data,
    )


# ---------------------------
# Provider
# ---------------------------
class OpenAIProvider:
    """Chat completions over any OpenAI-compatible HTTP endpoint.

    Pass `client` to share a connection pool (or a mock transport in tests);
    otherwise every call opens its own short-lived client.
    """

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float = DEFAULT_TIMEOUT):
        self._client = client
        self.timeout = timeout

    async def complete(self, conversation, params: ProviderParams, timeout: float | None = None) -> Completion:
        timeout = self.timeout if timeout is None else timeout
        url = resolve_provider_url(params.base_url)
        payload = build_request_payload(conversation, params)
        headers = {}
        if params.token:
            headers["Authorization"] = f"Bearer {params.token}"

        if self._client is not None:
            return await self._post(self._client, url, payload, headers, timeout)
        async with httpx.AsyncClient(timeout=timeout) as client:
            return await self._post(client, url, payload, headers, timeout)

    async def _post(self, client, url, payload, headers, timeout) -> Completion:
        try:
            resp = await client.post(url, json=payload, headers=headers, timeout=timeout)
        except httpx.TimeoutException as e:
            raise ProviderTimeout(f"llm provider timed out after {timeout}s") from e
        except httpx.HTTPError as e:
            logger.warning("LLM provider request failed", url=url, error=str(e))
            raise ProviderError(502, str(e)) from e

        if resp.status_code >= 400:
            logger.warning("LLM provider returned an error", url=url, status_code=resp.status_code)
            raise ProviderError(resp.status_code, resp.text)

        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderError(502, "provider response is not json") from e
        return parse_response_output(data)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
