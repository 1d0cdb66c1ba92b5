# ui/app_shell.py
from __future__ import annotations

import flet as ft

from core.settings import UI
from services.bootstrap import build_engine
from services.records import EVENTS, RecordService

from .sync_bar import SyncBar


class AppShell:
    """Root composition: one sync engine per session, owned here."""

    def __init__(self, page: ft.Page, user_id: str | None = None):
        self.page = page
        self.page.title = UI.app_title
        self.page.horizontal_alignment = ft.CrossAxisAlignment.STRETCH
        self.page.vertical_alignment = ft.MainAxisAlignment.START

        self.engine = build_engine()
        self.records = RecordService(self.engine, user_id=user_id)
        self.sync_bar = SyncBar(page, self.engine)
        self.engine.subscribe("acknowledged", lambda *_: self._refresh_events())
        self.engine.subscribe("rejected", lambda *_: self._refresh_events())

        self.name_field = ft.TextField(label="Event name", expand=True)
        self.date_field = ft.TextField(label="Date (YYYY-MM-DD)", width=180)
        self.target_field = ft.TextField(label="Target amount", width=160, value="0")
        self.events_list = ft.ListView(expand=True, spacing=4)

        self.root = ft.Column(
            controls=[
                ft.Container(self.sync_bar.view, padding=10),
                ft.Row(
                    controls=[
                        self.name_field,
                        self.date_field,
                        self.target_field,
                        ft.FilledButton("Create event", on_click=self._on_create_click),
                    ]
                ),
                ft.Divider(),
                self.events_list,
            ],
            expand=True,
        )

    # ---------- mount ----------
    def mount(self):
        self.page.controls.clear()
        self.page.add(self.root)
        self.sync_bar.mount()
        self.page.on_disconnect = lambda e: self.page.run_task(self.shutdown)
        self.page.run_task(self.engine.start)
        self._refresh_events()

    async def shutdown(self):
        self.sync_bar.unmount()
        await self.engine.close()

    # ---------- events ----------
    def _toast(self, text: str):
        self.page.snack_bar = ft.SnackBar(ft.Text(text))
        self.page.snack_bar.open = True
        self.page.update()

    def _on_create_click(self, e):
        self.page.run_task(self._create_event)

    async def _create_event(self):
        try:
            target = float(self.target_field.value or 0)
            record = await self.records.create_event(
                self.name_field.value or "",
                self.date_field.value or "",
                target_amount=target,
            )
        except ValueError as exc:
            self._toast(str(exc))
            return
        self.name_field.value = ""
        self.date_field.value = ""
        self.target_field.value = "0"
        if record.pending_sync:
            self._toast("Event created (offline, will sync later)")
        elif record.rejected:
            self._toast("Event was rejected by the server")
        else:
            self._toast("Event created")
        self._refresh_events()

    def _refresh_events(self):
        self.events_list.controls = [self._event_tile(r) for r in self.records.list(EVENTS)]
        self.page.update()

    def _event_tile(self, record) -> ft.ListTile:
        if record.pending_sync:
            badge = "pending sync"
        elif record.rejected:
            badge = "rejected"
        else:
            badge = "synced"
        collected = self.records.total_collected(record)
        return ft.ListTile(
            title=ft.Text(record.get("name")),
            subtitle=ft.Text(
                f"{record.get('date')} · {collected:.0f} / {record.get('targetAmount') or 0:.0f} · {badge}"
            ),
        )

