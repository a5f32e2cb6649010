"""
System tray front end.

Shows the 5-hour usage in the tray icon and a summary in the tooltip.  A
balloon pops up whenever a usage threshold is crossed, and the Details menu
item shows the recent trend and today's local breakdown.  All data comes from
``RefreshOrchestrator``; this module only renders it.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Any

import pystray  # type: ignore[import-untyped]  # no type stubs available

from .config import POLL_ERROR, ConfigStore
from .display import format_details, format_notification, format_tooltip
from .i18n import T
from .icons import create_icon_image, create_status_image
from .models import RefreshResult, Unavailable
from .orchestrator import RefreshOrchestrator

log = logging.getLogger(__name__)


class UsageTray:
    """System tray application displaying Claude usage."""

    def __init__(self, orchestrator: RefreshOrchestrator, config_store: ConfigStore) -> None:
        """Set up the tray icon with context menu and polling state."""
        self.orchestrator = orchestrator
        self.config_store = config_store
        self._stop = threading.Event()
        self.icon = pystray.Icon(
            'usage_monitor',
            icon=create_icon_image(0, 0, config_store.load().icon_style),
            title=T['loading'],
            menu=pystray.Menu(
                pystray.MenuItem(T['refresh'], self.on_refresh, default=True),
                pystray.MenuItem(T['details'], self.on_details),
                pystray.MenuItem(
                    T['show_remaining'], self.on_toggle_remaining,
                    checked=lambda item: self.config_store.load().show_remaining,
                ),
                pystray.MenuItem(T['quit'], self.on_quit),
            ),
        )

    def on_refresh(self, icon: Any = None, item: Any = None) -> None:
        threading.Thread(target=self.update, daemon=True).start()

    def on_details(self, icon: Any = None, item: Any = None) -> None:
        text = format_details(self.orchestrator.history(), self.orchestrator.last_local)
        # Windows limits balloon text to 255 characters
        self.icon.notify(text[:255], T['details_title'])

    def on_toggle_remaining(self, icon: Any = None, item: Any = None) -> None:
        config = self.config_store.load()
        self.config_store.save(replace(config, show_remaining=not config.show_remaining))
        if self.orchestrator.last_result is not None:
            self.render(self.orchestrator.last_result)

    def on_quit(self, icon: Any = None, item: Any = None) -> None:
        self._stop.set()
        self.icon.stop()

    def render(self, result: RefreshResult) -> None:
        config = self.config_store.load()
        if isinstance(result, Unavailable):
            self.icon.icon = create_status_image('!')
        elif result.is_local_only:
            self.icon.icon = create_status_image('C')
        else:
            self.icon.icon = create_icon_image(result.five_hour_pct, result.weekly_pct, config.icon_style)

        # Windows limits tray tooltips to 127 characters
        self.icon.title = format_tooltip(result, config.show_remaining, self.orchestrator.offline_for())[:127]

    def update(self) -> RefreshResult:
        """Run a refresh cycle, redraw, and notify on threshold crossings."""
        result = self.orchestrator.refresh()
        self.render(result)
        if not isinstance(result, Unavailable):
            for event in self.orchestrator.check_thresholds(result):
                self.icon.notify(format_notification(event), T['notify_title'])

        return result

    def poll_loop(self) -> None:
        """Refresh on the configured interval; retry sooner after a cycle without data."""
        while not self._stop.is_set():
            result = self.update()
            interval = self.config_store.load().refresh_interval
            if isinstance(result, Unavailable):
                interval = min(interval, POLL_ERROR)
            self._stop.wait(interval)

    def _on_icon_ready(self, icon: Any) -> None:
        """Called by pystray in a separate thread once the tray icon is set up."""
        try:
            icon.visible = True
            self.poll_loop()
        except Exception:
            log.exception('Tray: polling thread crashed')

    def run(self) -> None:
        self.icon.run(setup=self._on_icon_ready)
