"""Agent Workflow Runner.

Runs user-authored workflows (skills, agents, commands, raw messages) against a
conversational agent backend:
- configuration loaded from `.env`
- structured logging
- an event-driven run engine with summarize-and-handoff between steps
"""

__version__ = "0.1.0"

from agent_workflow_runner.orchestrator.config import WorkflowRunnerSettings

__all__ = ["__version__", "WorkflowRunnerSettings"]
