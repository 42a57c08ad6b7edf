"""
Core Concurrency Module

Runs pipeline stages on background threads and collects their outcomes.
"""

from .runner import BackgroundTask, BackgroundTaskRunner, StageScope, TaskOutcome

__all__ = [
    'BackgroundTask',
    'BackgroundTaskRunner',
    'StageScope',
    'TaskOutcome',
]
