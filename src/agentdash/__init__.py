"""agentdash - orchestration core for tabular analysis agents."""

__version__ = "0.4.0"
