"""
IDWO: Intelligent Developer Workflow Orchestrator.

Coordinates GitHub, Jira, Slack and an LLM to automate pull request
analysis, issue triage, release gating and team insights.
"""

__version__ = "1.0.0"
