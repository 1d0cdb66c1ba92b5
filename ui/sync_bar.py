# ui/sync_bar.py
from __future__ import annotations

import flet as ft

from core.settings import UI
from services.sync_engine import NotOnline, SyncEngine
from services.sync_status import SyncStatus


def status_label(status: SyncStatus) -> str:
    if not status.online:
        return "Offline"
    return "Syncing..." if status.syncing else "Online"


def status_color(status: SyncStatus) -> str:
    if not status.online:
        return UI.offline_color
    return UI.syncing_color if status.syncing else UI.online_color


class SyncBar:
    """Connectivity dot, pending badge, sync button and offline toggle."""

    def __init__(self, page: ft.Page, engine: SyncEngine):
        self.page = page
        self.engine = engine

        self.dot = ft.Container(width=8, height=8, border_radius=4)
        self.label = ft.Text(size=12)
        self.badge_text = ft.Text(size=11, weight=ft.FontWeight.BOLD)
        self.badge = ft.Container(
            content=self.badge_text,
            bgcolor=UI.pending_color,
            border_radius=9,
            padding=ft.padding.symmetric(horizontal=6, vertical=1),
        )
        self.sync_btn = ft.OutlinedButton("Sync now", on_click=self._on_sync_click)
        self.toggle_btn = ft.TextButton(on_click=self._on_toggle_click)
        self.banner = ft.Container(
            content=ft.Text("Working offline. Changes will sync when you are back online."),
            bgcolor=UI.offline_color,
            padding=10,
            visible=False,
        )

        self.view = ft.Column(
            controls=[
                ft.Row(
                    controls=[self.dot, self.label, self.badge, self.sync_btn, self.toggle_btn],
                    spacing=10,
                    vertical_alignment=ft.CrossAxisAlignment.CENTER,
                ),
                self.banner,
            ],
            spacing=4,
        )
        self._unsubscribe = None

    def mount(self):
        self._unsubscribe = self.engine.watch_status(self._on_status)
        self.render(self.engine.current_status(), update=False)

    def unmount(self):
        if self._unsubscribe:
            self._unsubscribe()
        self._unsubscribe = None

    def render(self, status: SyncStatus, *, update: bool = True):
        self.dot.bgcolor = status_color(status)
        self.label.value = status_label(status)
        self.badge_text.value = f"{status.pending_changes} pending"
        self.badge.visible = status.pending_changes > 0
        self.sync_btn.disabled = status.syncing
        self.toggle_btn.text = "Go online" if self.engine.manual_offline else "Go offline"
        self.banner.visible = not status.online
        if update:
            self.page.update()

    # ---------- events ----------
    def _on_status(self, status: SyncStatus):
        self.render(status)

    def _toast(self, text: str):
        self.page.snack_bar = ft.SnackBar(ft.Text(text))
        self.page.snack_bar.open = True
        self.page.update()

    def _on_sync_click(self, e):
        self.page.run_task(self._sync)

    def _on_toggle_click(self, e):
        self.page.run_task(self._toggle)

    async def _sync(self):
        try:
            result = await self.engine.manual_sync()
        except NotOnline:
            self._toast("Not online, cannot sync")
            return
        if result and result.rejected:
            self._toast(f"{len(result.rejected)} changes were rejected by the server")

    async def _toggle(self):
        await self.engine.toggle_manual_offline()
        self.render(self.engine.current_status())
