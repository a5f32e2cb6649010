"""Entry point: ``python -m claude_usage`` or the ``usage-monitor-for-claude`` script."""
from __future__ import annotations

import logging
import sys

from .config import ConfigStore, app_dir
from .credentials import CredentialStore
from .history import HistoryLog
from .local_stats import LocalStatsReader
from .log import setup_logging
from .notifier import ThresholdNotifier
from .orchestrator import RefreshOrchestrator

log = logging.getLogger('claude_usage')


def build_orchestrator() -> tuple[RefreshOrchestrator, ConfigStore]:
    config_store = ConfigStore()
    credentials = CredentialStore()
    orchestrator = RefreshOrchestrator(
        config_store=config_store,
        credentials=credentials,
        local_stats=LocalStatsReader(plan_source=credentials.subscription_type),
        history=HistoryLog(app_dir() / 'history.json'),
        notifier=ThresholdNotifier(config_store.load().notify_thresholds),
    )
    return orchestrator, config_store


def main() -> int:
    setup_logging(logging.DEBUG if '--debug' in sys.argv[1:] else logging.INFO)
    orchestrator, config_store = build_orchestrator()

    # Imported late: pystray picks a display backend at import time
    from .tray import UsageTray

    try:
        UsageTray(orchestrator, config_store).run()
    except Exception:
        log.exception('Tray: fatal error')
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
