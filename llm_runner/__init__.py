"""llm-runner: run LLM coding-agent CLIs and render their stream-json output."""

__version__ = "0.1.0"
