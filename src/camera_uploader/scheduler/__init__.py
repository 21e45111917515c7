"""Scheduling package for periodic camera uploads."""

from .agent_scheduler import AgentScheduler, SchedulerError

__all__ = ["AgentScheduler", "SchedulerError"]
