"""
ai-cli - send prompts to OpenAI-compatible APIs.

Usage
-----
    ai-cli --prompt "Explain DNS in one paragraph"
    ai-cli --file question.txt --format json -o answer.json
    cat notes.md | ai-cli --stream
    ai-cli --config

Settings live in a per-user JSON file (see --settings); API keys stored there
are encrypted. Command-line options override the default model configuration,
and AI_API_KEY / AI_BASE_URL (environment or .env) are used as fallbacks.
"""
import argparse
import json
import os
import re
import sys
from pathlib import Path
from typing import Callable, List, Optional, TextIO

from rich.console import Console
from rich.live import Live
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.spinner import Spinner

from aicli import __version__
from aicli.client import AIClient
from aicli.config import Config, settings_path
from aicli.config_menu import ConfigurationMenu
from aicli.encryption import EncryptionService, create_encryption_service, has_encryption_marker
from aicli.errors import (
    ApiError,
    ConfigurationError,
    EncryptionError,
    ExitCode,
    PromptSourceError,
    SettingsError,
    UsageError,
)
from aicli.logging_setup import get_logger, setup_logging, shutdown_logging
from aicli.prompt_service import CliOptions, PromptService
from aicli.settings_store import FileUserSettingsStore

logger = get_logger("cli")

ANSI_ESCAPE = re.compile(r"\x1B\[[0-9;]*[mGK]")

# -----------------------------
# Argument parsing
# -----------------------------
class CliArgumentParser(argparse.ArgumentParser):
    def error(self, message):
        raise UsageError(message)


def _float_arg(value: str) -> float:
    try:
        return float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number: {value!r}")


def build_parser() -> CliArgumentParser:
    parser = CliArgumentParser(
        prog=Config.APP_NAME,
        description="AI CLI - Send prompts to OpenAI-compatible APIs",
    )

    source = parser.add_argument_group("prompt source")
    source.add_argument("-p", "--prompt", help="Prompt text to send to the AI service")
    source.add_argument("-f", "--file", dest="file_path", help="Path to a prompt file (removed after the request)")

    gen = parser.add_argument_group("generation")
    gen.add_argument("-m", "--model", default=Config.DEFAULT_MODEL, help="AI model to use")
    gen.add_argument("--temperature", type=_float_arg, default=Config.DEFAULT_TEMPERATURE,
                     help="Temperature for generation (0.0 to 2.0)")
    gen.add_argument("--max-tokens", type=int, help="Maximum number of tokens to generate")
    gen.add_argument("--top-p", type=_float_arg, help="Top-p sampling parameter (0.0 to 1.0)")

    out = parser.add_argument_group("output")
    out.add_argument("-o", "--output-file", help="Save response to file")
    out.add_argument("--format", default=Config.DEFAULT_FORMAT, help="Output format (text or json)")
    out.add_argument("--stream", action="store_true", help="Stream response tokens as they arrive")

    api = parser.add_argument_group("api")
    api.add_argument("--api-key", help=f"API key (overrides settings and {Config.API_KEY_ENV})")
    api.add_argument("--base-url", help="Base URL for the API endpoint")

    parser.add_argument("--config", action="store_true", help="Open the interactive configuration menu")
    parser.add_argument("--settings", dest="settings_file", help="Settings file to use instead of the default")
    parser.add_argument("-v", "--verbose", action="store_true", help="Write debug records to the log file")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _stdin_redirected(stream: TextIO) -> bool:
    try:
        return not stream.isatty()
    except (AttributeError, ValueError):
        return False


def parse_options(argv: Optional[List[str]], stdin: TextIO) -> CliOptions:
    args = build_parser().parse_args(argv)
    redirected = _stdin_redirected(stdin)

    if not args.config:
        sources = sum([bool(args.prompt), bool(args.file_path), redirected])
        if sources > 1:
            raise UsageError("Only one prompt source can be specified: --prompt, --file, or stdin")
        if sources == 0:
            raise UsageError("No prompt source specified. Use --prompt, --file, or provide input via stdin")

    if not 0.0 <= args.temperature <= 2.0:
        raise UsageError("Temperature must be between 0.0 and 2.0")
    if args.top_p is not None and not 0.0 <= args.top_p <= 1.0:
        raise UsageError("Top-p must be between 0.0 and 1.0")
    if args.format not in Config.FORMATS:
        raise UsageError("Format must be 'text' or 'json'")
    if args.max_tokens is not None and args.max_tokens <= 0:
        raise UsageError("Max tokens must be a positive integer")

    return CliOptions(
        prompt=args.prompt,
        file_path=args.file_path,
        use_stdin=not args.prompt and not args.file_path and redirected,
        model=args.model,
        temperature=args.temperature,
        max_tokens=args.max_tokens,
        top_p=args.top_p,
        output_file=args.output_file,
        format=args.format,
        stream=args.stream,
        api_key=args.api_key,
        base_url=args.base_url,
        config=args.config,
        settings_file=args.settings_file,
        verbose=args.verbose,
    )

# -----------------------------
# Effective options
# -----------------------------
def apply_settings(options: CliOptions, store: FileUserSettingsStore, encryption: EncryptionService) -> CliOptions:
    """
    Merge the default model configuration into the options.
    A CLI value wins when it differs from the built-in default.
    """
    settings = store.load()
    model_config = settings.get_default_model_configuration()

    env_key = Config.env_api_key()
    if model_config is None and not (options.api_key or env_key):
        raise ConfigurationError(
            "No model configuration found in settings. Run with --config to add one, "
            f"or pass --api-key / set {Config.API_KEY_ENV}."
        )

    if model_config is not None:
        stored_key = model_config.api_key
        if not options.api_key and (encryption.is_encrypted(stored_key) or has_encryption_marker(stored_key)):
            raise ConfigurationError(
                f"The API key of configuration '{model_config.id}' could not be decrypted on this machine. "
                "Re-enter it with --config or pass --api-key."
            )
        if options.model == Config.DEFAULT_MODEL:
            options.model = model_config.model
        if options.temperature == Config.DEFAULT_TEMPERATURE:
            options.temperature = model_config.temperature
        if options.max_tokens is None:
            options.max_tokens = model_config.max_tokens
        if options.format == Config.DEFAULT_FORMAT:
            options.format = model_config.format
        if not options.stream:
            options.stream = model_config.stream
        options.api_key = options.api_key or stored_key
        options.base_url = options.base_url or model_config.base_url

    options.api_key = options.api_key or env_key
    options.base_url = options.base_url or Config.env_base_url() or Config.DEFAULT_BASE_URL

    if not options.api_key:
        raise ConfigurationError(
            f"API key is required. Set {Config.API_KEY_ENV}, use --api-key, or configure one with --config."
        )
    return options

# -----------------------------
# Output
# -----------------------------
def write_output_file(file_path: str, content: str) -> None:
    path = Path(file_path)
    path.write_text(ANSI_ESCAPE.sub("", content), encoding="utf-8")
    if os.name != "nt":
        try:
            os.chmod(path, 0o600)
        except OSError:
            logger.warning("Failed to set file permissions", extra={"file": str(path)})

# -----------------------------
# App
# -----------------------------
class App:
    def __init__(
        self,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
        err_console: Optional[Console] = None,
        client_factory: Callable[..., AIClient] = AIClient,
        encryption_factory: Callable[[], EncryptionService] = create_encryption_service,
    ):
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout
        self.err_console = err_console or Console(stderr=True)
        self.client_factory = client_factory
        self.encryption_factory = encryption_factory

    def error(self, message: str):
        self.err_console.print(f"[bold red]Error:[/] {escape(message)}")

    def build_store(self, options: CliOptions):
        encryption = self.encryption_factory()
        return FileUserSettingsStore(settings_path(options.settings_file), encryption), encryption

    def run(self, argv: Optional[List[str]] = None) -> int:
        try:
            options = parse_options(argv, self.stdin)
        except UsageError as e:
            self.error(str(e))
            return ExitCode.INVALID_ARGUMENTS

        try:
            store, encryption = self.build_store(options)

            if options.config:
                ConfigurationMenu(store).start()
                return ExitCode.SUCCESS

            options = apply_settings(options, store, encryption)
            logger.info("Starting AI CLI", extra={"model": options.model, "stream": options.stream})

            service = PromptService(self.client_factory(options.api_key, options.base_url), stdin=self.stdin)
            if options.stream:
                self.run_streaming(service, options)
            else:
                self.run_once(service, options)
            return ExitCode.SUCCESS

        except ConfigurationError as e:
            self.error(str(e))
            return ExitCode.INVALID_ARGUMENTS
        except PromptSourceError as e:
            self.error(f"File error: {e}")
            return ExitCode.FILE_ERROR
        except PermissionError as e:
            self.error(f"Access error: {e}")
            return ExitCode.FILE_ERROR
        except ApiError as e:
            self.error(f"API error: {e}")
            return ExitCode.API_ERROR
        except KeyboardInterrupt:
            self.error("Operation cancelled.")
            return ExitCode.API_ERROR
        except (SettingsError, EncryptionError) as e:
            self.error(str(e))
            return ExitCode.UNKNOWN_ERROR
        except OSError as e:
            self.error(f"File error: {e}")
            return ExitCode.FILE_ERROR
        except Exception as e:
            logger.critical("Application terminated unexpectedly", exc_info=True)
            self.error(f"Unexpected error: {e}")
            return ExitCode.UNKNOWN_ERROR

    def run_once(self, service: PromptService, options: CliOptions):
        response = service.process_prompt(options)
        if not response.success:
            raise ApiError(response.error_message or "Unknown API error")

        output = response.raw_response if options.format == "json" else response.content
        self.stdout.write(output)
        if options.format == "text" and not output.endswith("\n"):
            self.stdout.write("\n")
        self.stdout.flush()

        if options.output_file:
            write_output_file(options.output_file, output)

    def run_streaming(self, service: PromptService, options: CliOptions):
        chunks = service.process_streaming_prompt(options)
        if options.format == "text" and self._stdout_is_terminal():
            content = self.stream_markdown(chunks)
        else:
            parts = []
            for chunk in chunks:
                if options.format == "json":
                    self.stdout.write(json.dumps({"content": chunk}) + "\n")
                else:
                    self.stdout.write(chunk)
                self.stdout.flush()
                parts.append(chunk)
            if options.format == "text":
                self.stdout.write("\n")
            content = "".join(parts)

        if options.output_file:
            write_output_file(options.output_file, content)

    def _stdout_is_terminal(self) -> bool:
        try:
            return self.stdout.isatty()
        except (AttributeError, ValueError):
            return False

    def stream_markdown(self, content_generator) -> str:
        console = Console(file=self.stdout)
        full_response = ""
        with Live(
            Panel(Spinner("dots", text="Waiting for response..."), border_style="cyan"),
            console=console,
            refresh_per_second=12,
            transient=False,
        ) as live:
            for chunk in content_generator:
                full_response += chunk
                md = Markdown(full_response or "...", code_theme=Config.CODE_THEME)
                live.update(Panel(md, border_style="cyan"))

            live.update(Panel(Markdown(full_response, code_theme=Config.CODE_THEME), border_style="green"))
        return full_response


def main(argv: Optional[List[str]] = None) -> int:
    Config.load_env()
    argv = sys.argv[1:] if argv is None else argv
    setup_logging(debug=("-v" in argv or "--verbose" in argv) or None)
    try:
        return int(App().run(argv))
    finally:
        shutdown_logging()


if __name__ == "__main__":
    sys.exit(main())
