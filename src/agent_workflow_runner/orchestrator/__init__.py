"""Local-first workflow runner components.

Provides:
- Settings loaded from .env
- Structured logging
- A small CLI surface
- The workflow run engine (see `agent_workflow_runner.orchestrator.workflow`)
"""
