"""tinyclaw: file-queue processor and multi-agent conversation orchestrator."""

__version__ = "0.1.0"
