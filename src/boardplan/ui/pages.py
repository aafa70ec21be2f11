from __future__ import annotations

import logging
from datetime import date, datetime

from nicegui import ui

from boardplan.core.calendar import ViewType, is_weekday
from boardplan.core.load import LoadLevel
from boardplan.core.models import Priority, WorkOrder
from boardplan.data.assignment_store import AssignmentStore
from boardplan.data.excel_io import export_board_xlsx
from boardplan.data.repository import Repository
from boardplan.scheduling import MoveStatus, ScheduleBoard
from boardplan.scheduling.transaction import cell_id

logger = logging.getLogger(__name__)

_PRIORITY_COLORS = {
    Priority.CRITICAL: "#e74c3c",
    Priority.HIGH: "#e67e22",
    Priority.MEDIUM: "#3498db",
    Priority.LOW: "#2ecc71",
}

_LOAD_STYLES = {
    LoadLevel.OVER_CAPACITY: ("#b71c1c", "#ffebee"),
    LoadLevel.NEAR_CAPACITY: ("#b26a00", "#fff3e0"),
    LoadLevel.NORMAL: ("#2e7d32", "transparent"),
    LoadLevel.INDETERMINATE: ("#9e9e9e", "transparent"),
}


def register_pages(repo: Repository, store: AssignmentStore) -> None:
    @ui.page("/")
    async def board_page() -> None:
        board = ScheduleBoard(
            store,
            config=repo.get_scheduling_config(),
            notifier=lambda msg: ui.notify(msg, type="negative", close_button=True, timeout=0),
        )
        state = {"search": "", "layout": "weeks"}

        try:
            await board.refresh()
        except Exception as ex:
            logger.exception("Board load failed")
            ui.label(f"Failed to load data: {ex}").classes("text-negative")
            return

        async def _open_move_dialog(order: WorkOrder) -> None:
            options = {"": "Unassigned"} | {r.resource_id: r.name for r in board.resources}
            current = order.week_key or board.anchor
            with ui.dialog() as dialog, ui.card():
                ui.label(f"Move order {order.order_number}").classes("text-lg font-semibold")
                resource_sel = ui.select(options, value=order.assigned_resource_id or "", label="Resource")
                day_input = ui.input("Start date", value=current.isoformat()).props("type=date")

                async def _do_move() -> None:
                    try:
                        target = date.fromisoformat(str(day_input.value))
                    except ValueError:
                        ui.notify("Invalid date", color="negative")
                        return
                    dialog.close()
                    outcome = await board.move_order(order.order_id, resource_sel.value or None, target)
                    if outcome.ok:
                        ui.notify(f"Order {order.order_number} moved", type="positive")
                    elif outcome.status is MoveStatus.REJECTED:
                        ui.notify(outcome.message, type="warning")
                    grid.refresh()

                with ui.row():
                    ui.button("Move", on_click=_do_move)
                    ui.button("Cancel", on_click=dialog.close).props("flat")
            dialog.open()

        async def _on_drop(over_id: str) -> None:
            dragged = state.pop("dragging", None)
            if not dragged:
                return
            outcome = await board.drop(dragged, over_id)
            if outcome.status is MoveStatus.REJECTED:
                ui.notify(outcome.message, type="warning")
            grid.refresh()

        def _render_card(order: WorkOrder, highlighted: set[str], *, drop_on_card: bool = True) -> None:
            bg = "#FFEB3B" if order.order_id in highlighted else "#fff"
            card = ui.card().classes("w-full p-2 cursor-move").props("draggable").style(
                f"border-left: 4px solid {_PRIORITY_COLORS.get(order.priority, '#95a5a6')}; background: {bg}"
            )
            card.on("dragstart", lambda o=order: state.update(dragging=o.order_id))
            if drop_on_card:
                card.on("drop.stop", lambda o=order: _on_drop(o.order_id))
            with card:
                with ui.row().classes("w-full items-center justify-between no-wrap"):
                    ui.label(f"{order.order_number} ({board.estimate_for(order):g}h)").classes("text-xs font-medium")
                    ui.button(icon="open_with", on_click=lambda o=order: _open_move_dialog(o)).props("flat dense size=sm")
                if order.description:
                    ui.label(order.description).classes("text-xs text-slate-500")

        def _render_weeks(highlighted: set[str]) -> None:
            weeks = board.weeks
            loads = board.loads(weeks)
            with ui.element("div").classes("w-full overflow-auto"):
                with ui.row().classes("no-wrap"):
                    ui.label("Resource").classes("w-48 font-bold")
                    for week in weeks:
                        ui.label(f"Week {week.isocalendar()[1]} ({week:%b %d})").classes("w-52 font-bold text-center")
                rows = [(r.resource_id, r.name) for r in board.resources] + [(None, "Unassigned")]
                for resource_id, name in rows:
                    with ui.row().classes("no-wrap border-t py-1"):
                        ui.label(name).classes("w-48")
                        for week in weeks:
                            cell = loads.get((resource_id, week)) if resource_id else None
                            fg, bg = _LOAD_STYLES[cell.level] if cell else ("#9e9e9e", "transparent")
                            column = ui.column().classes("w-52 gap-1 min-h-12").style(f"background: {bg}")
                            column.on("dragover.prevent", lambda: None)
                            column.on("drop", lambda cid=cell_id(resource_id, week): _on_drop(cid))
                            with column:
                                if cell is not None:
                                    ui.label(cell.label).classes("text-xs font-bold").style(f"color: {fg}")
                                orders = board.cell_orders(resource_id, week)
                                if not orders:
                                    ui.label("No orders").classes("text-xs text-slate-400")
                                for order in orders:
                                    _render_card(order, highlighted)

        def _render_days(highlighted: set[str]) -> None:
            days = board.dates
            with ui.element("div").classes("w-full overflow-auto"):
                with ui.row().classes("no-wrap"):
                    ui.label("Resource").classes("w-48 font-bold")
                    for day in days:
                        ui.label(f"{day:%a %d %b}").classes("w-36 font-bold text-center")
                rows = [(r.resource_id, r.name) for r in board.resources] + [(None, "Unassigned")]
                for resource_id, name in rows:
                    with ui.row().classes("no-wrap border-t py-1"):
                        ui.label(name).classes("w-48")
                        for day in days:
                            bg = "transparent" if is_weekday(day) else "#f1f5f9"
                            column = ui.column().classes("w-36 gap-1 min-h-12").style(f"background: {bg}")
                            column.on("dragover.prevent", lambda: None)
                            column.on("drop", lambda cid=cell_id(resource_id, day): _on_drop(cid))
                            with column:
                                # Drops on a card land on the day cell underneath.
                                for order in board.day_orders(resource_id, day):
                                    _render_card(order, highlighted, drop_on_card=False)

        @ui.refreshable
        def grid() -> None:
            highlighted = {o.order_id for o in board.search(state["search"])}
            if state["layout"] == "weeks":
                _render_weeks(highlighted)
            else:
                _render_days(highlighted)

        def _navigate(steps: int) -> None:
            board.navigate(steps)
            ui.timer(0.01, _reload, once=True)

        def _today() -> None:
            board.go_to(date.today())
            ui.timer(0.01, _reload, once=True)

        async def _reload() -> None:
            await board.refresh()
            grid.refresh()

        def _export() -> None:
            content = export_board_xlsx(board.resources, board.weeks, board.loads())
            ui.download(content, f"resource_planning_board_{datetime.now():%Y%m%d_%H%M%S}.xlsx")

        def _on_layout(e) -> None:
            state["layout"] = str(e.value)
            board.set_view(ViewType.MONTH if state["layout"] == "month" else ViewType.WEEK)
            ui.timer(0.01, _reload, once=True)

        def _on_search(e) -> None:
            state["search"] = str(e.value or "")
            grid.refresh()

        with ui.row().classes("w-full items-center justify-between p-2"):
            ui.label("Resource Planning Board").classes("text-xl font-semibold")
            ui.input("Search orders", on_change=_on_search).props("dense outlined")
            ui.toggle({"weeks": "Weeks", "week": "Week", "month": "Month"}, value="weeks", on_change=_on_layout).props("dense no-caps")
            with ui.row().classes("items-center gap-1"):
                ui.button(icon="chevron_left", on_click=lambda: _navigate(-1)).props("flat dense")
                ui.button("Today", on_click=_today).props("flat dense no-caps")
                ui.button(icon="chevron_right", on_click=lambda: _navigate(1)).props("flat dense")
                ui.button(icon="download", on_click=_export).props("flat dense")

        grid()

        board.attach_feed()
        redraw = store.feed.subscribe(lambda _orders: grid.refresh())

        def _teardown() -> None:
            redraw.unsubscribe()
            board.close()

        ui.context.client.on_disconnect(_teardown)

    @ui.page("/audit")
    def audit_page() -> None:
        ui.label("Audit log").classes("text-xl font-semibold")
        rows = [
            {"timestamp": e.timestamp, "category": e.category, "message": e.message, "details": e.details or ""}
            for e in repo.get_recent_audit_entries(limit=200)
        ]
        columns = [{"name": k, "label": k.title(), "field": k, "align": "left"} for k in ("timestamp", "category", "message", "details")]
        ui.table(columns=columns, rows=rows).classes("w-full")
