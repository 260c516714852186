"""ai-cli - send prompts to OpenAI-compatible chat APIs from the terminal."""

__version__ = "1.0.0"
