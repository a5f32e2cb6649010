"""
Usage Monitor for Claude
=========================

Displays the current Claude usage as a system tray icon.

Usage is resolved on every poll from, in order of preference:

1. the Claude Code OAuth token in ``~/.claude/.credentials.json``
2. a claude.ai ``sessionKey`` cookie from the config file
3. Claude Code's local session logs (``~/.claude/projects``)
"""
from .models import HistoryPoint, NotificationEvent, Unavailable, UsageSnapshot
from .orchestrator import RefreshOrchestrator

__all__ = ['HistoryPoint', 'NotificationEvent', 'RefreshOrchestrator', 'Unavailable', 'UsageSnapshot']
__version__ = '1.1.0'
