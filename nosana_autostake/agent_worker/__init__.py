"""
Agent worker package — runs the auto-stake agent.

Follows the node's log stream, runs one staking cycle per finished job, and
reports every cycle outcome as an audit event.
"""

from nosana_autostake.agent_worker.pipeline import AuditEvent, Pipeline
from nosana_autostake.agent_worker.runner import main, run_agent

__all__ = ["AuditEvent", "Pipeline", "main", "run_agent"]
