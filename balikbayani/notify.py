# balikbayani/notify.py
from __future__ import annotations
import logging
from typing import Literal, Protocol

from nicegui import ui

logger = logging.getLogger(__name__)

NotifyKind = Literal['positive', 'negative', 'warning', 'info', 'ongoing']


class Notifier(Protocol):
    def notify(self, kind: NotifyKind, title: str, detail: str = '') -> None: ...


class Redirector(Protocol):
    def redirect(self, url: str, delay_ms: int = 0) -> None: ...


class NiceGuiNotifier:
    """Toasts through `ui.notify` in the current client."""

    def notify(self, kind: NotifyKind, title: str, detail: str = '') -> None:
        if detail:
            ui.notify(title, type=kind, caption=detail, position='top', multi_line=True)
        else:
            ui.notify(title, type=kind, position='top')


class NiceGuiRedirector:
    def redirect(self, url: str, delay_ms: int = 0) -> None:
        if delay_ms <= 0:
            ui.navigate.to(url)
            return
        ui.timer(delay_ms / 1000, lambda: ui.navigate.to(url), once=True)


class LogNotifier:
    """For sessions without a browser client (scripts, background tasks)."""

    def notify(self, kind: NotifyKind, title: str, detail: str = '') -> None:
        level = logging.WARNING if kind in ('negative', 'warning') else logging.INFO
        logger.log(level, f"[{kind}] {title}" + (f" - {detail}" if detail else ''))
