import json
from dataclasses import dataclass
from typing import Any, Dict, Generator, Optional

import openai

from aicli import __version__
from aicli.config import Config
from aicli.errors import ApiError
from aicli.logging_setup import get_logger

logger = get_logger("client")


@dataclass(frozen=True)
class AIRequest:
    prompt: str
    model: str
    temperature: float = Config.DEFAULT_TEMPERATURE
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    stream: bool = False


@dataclass(frozen=True)
class AIResponse:
    content: str
    model: str
    raw_response: str
    success: bool = True
    error_message: Optional[str] = None


def _status_of(e: Exception) -> Optional[int]:
    status = getattr(e, "status_code", None)
    if status is None and hasattr(e, "response"):
        status = getattr(getattr(e, "response", None), "status_code", None)
    return status if isinstance(status, int) else None


class AIClient:
    """Thin wrapper over the OpenAI SDK for a single-prompt chat completion."""

    def __init__(self, api_key: str, base_url: Optional[str] = None, client: Optional[openai.OpenAI] = None):
        self.base_url = base_url or Config.DEFAULT_BASE_URL
        self.client = client or openai.OpenAI(
            api_key=api_key,
            base_url=self.base_url,
            timeout=Config.REQUEST_TIMEOUT,
            default_headers={"User-Agent": f"ai-cli/{__version__}"},
        )

    @staticmethod
    def _params(request: AIRequest, stream: bool) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "model": request.model,
            "messages": [{"role": "user", "content": request.prompt}],
            "temperature": request.temperature,
            "stream": stream,
        }
        # omit unset knobs rather than sending nulls
        if request.max_tokens is not None:
            params["max_tokens"] = request.max_tokens
        if request.top_p is not None:
            params["top_p"] = request.top_p
        return params

    def send_request(self, request: AIRequest) -> AIResponse:
        logger.debug("Sending request", extra={"model": request.model, "base_url": self.base_url})
        try:
            completion = self.client.chat.completions.create(**self._params(request, stream=False))
        except openai.APIError as e:
            status = _status_of(e)
            logger.error("API request failed", extra={"status": status, "model": request.model})
            body = getattr(e, "body", None)
            return AIResponse(
                content="",
                model=request.model,
                raw_response=json.dumps(body) if body is not None else "",
                success=False,
                error_message=f"API request failed with status {status}: {e}" if status else str(e),
            )

        content = ""
        if completion.choices:
            content = completion.choices[0].message.content or ""

        logger.debug("Received response", extra={"model": completion.model})
        return AIResponse(
            content=content,
            model=completion.model or request.model,
            raw_response=completion.model_dump_json(),
        )

    def send_streaming_request(self, request: AIRequest) -> Generator[str, None, None]:
        logger.debug("Sending streaming request", extra={"model": request.model, "base_url": self.base_url})
        try:
            stream = self.client.chat.completions.create(**self._params(request, stream=True))
            for chunk in stream:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content
        except openai.APIError as e:
            status = _status_of(e)
            logger.error("Streaming API request failed", extra={"status": status, "model": request.model})
            raise ApiError(f"Streaming request failed: {e}", status_code=status) from e
