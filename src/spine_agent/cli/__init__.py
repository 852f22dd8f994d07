"""spine-agent command line interface."""

from spine_agent.cli.app import app

__all__ = ["app"]
