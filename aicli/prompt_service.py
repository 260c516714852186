import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Generator, Optional, TextIO

from aicli.client import AIClient, AIRequest, AIResponse
from aicli.config import Config
from aicli.errors import PromptSourceError
from aicli.logging_setup import get_logger

logger = get_logger("prompt")


@dataclass
class CliOptions:
    """Effective options for one invocation, after settings have been merged in."""

    prompt: Optional[str] = None
    file_path: Optional[str] = None
    use_stdin: bool = False
    model: str = Config.DEFAULT_MODEL
    temperature: float = Config.DEFAULT_TEMPERATURE
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    output_file: Optional[str] = None
    format: str = Config.DEFAULT_FORMAT
    stream: bool = False
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    config: bool = False
    settings_file: Optional[str] = None
    verbose: bool = False


class PromptService:
    def __init__(self, client: AIClient, stdin: Optional[TextIO] = None):
        self.client = client
        self.stdin = stdin

    def process_prompt(self, options: CliOptions) -> AIResponse:
        request = self._build_request(options, stream=False)
        logger.info("Processing prompt", extra={"model": options.model})
        response = self.client.send_request(request)
        self._cleanup_prompt_file(options)
        return response

    def process_streaming_prompt(self, options: CliOptions) -> Generator[str, None, None]:
        request = self._build_request(options, stream=True)
        logger.info("Processing streaming prompt", extra={"model": options.model})
        yield from self.client.send_streaming_request(request)
        self._cleanup_prompt_file(options)

    def _build_request(self, options: CliOptions, stream: bool) -> AIRequest:
        return AIRequest(
            prompt=self.read_prompt(options),
            model=options.model,
            temperature=options.temperature,
            max_tokens=options.max_tokens,
            top_p=options.top_p,
            stream=stream,
        )

    def read_prompt(self, options: CliOptions) -> str:
        if options.prompt:
            return options.prompt

        if options.file_path:
            path = Path(options.file_path)
            if not path.is_file():
                raise PromptSourceError(f"Prompt file not found: {options.file_path}")
            try:
                return path.read_text(encoding="utf-8")
            except OSError as e:
                raise PromptSourceError(f"Cannot read prompt file: {options.file_path}") from e

        if options.use_stdin:
            stream = self.stdin or sys.stdin
            return stream.read().rstrip()

        raise PromptSourceError("No prompt source specified")

    @staticmethod
    def _cleanup_prompt_file(options: CliOptions) -> None:
        # prompt files are consumed by the request
        if not options.file_path:
            return
        path = Path(options.file_path)
        if not path.exists():
            return
        try:
            path.unlink()
            logger.debug("Deleted prompt file", extra={"file": str(path)})
        except OSError:
            logger.warning("Failed to delete prompt file", extra={"file": str(path)}, exc_info=True)
