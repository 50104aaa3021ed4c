# src/study_companion/cli/commands.py

from __future__ import annotations

import inspect
import json
import logging
from collections.abc import Callable
from typing import cast

from ..core.errors import MalformedDateError, MalformedTimeError
from ..core.state import AppState
from ..core.timeutil import format_time_12h, local_now, parse_date, time_to_minutes
from ..notifications.intents import PassReport
from ..tasks.selectors import friendly_date, select_now_items, select_unscheduled_items, select_upcoming_groups
from ..tasks.task_api import (
    create_task,
    delete_task,
    request_sync,
    set_task_completed,
    update_task,
    update_task_notes,
)
from ..tasks.task_models import ActionItem, DeadlineIntent
from ..timetable.resolver import describe, resolve, today_schedule
from ..timetable.timetable_store import load_slots_json

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

SHORT_ID_LEN = 8


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- formatting helpers ----


def _short(item: ActionItem) -> str:
    return item.id[:SHORT_ID_LEN]


def _format_item(item: ActionItem) -> str:
    mark = "x" if item.is_completed else " "
    when = ""
    if item.date and item.time:
        when = f" @ {item.date} {item.time}"
    elif item.date:
        when = f" @ {item.date}"
    notes = f"  ({item.notes})" if item.notes else ""
    return f"[{mark}] {_short(item)}  {item.text}{when}{notes}"


def _format_report(report: PassReport | None) -> str:
    if report is None:
        return "Sync queued (a pass was already running) or aborted; see the log."
    return (
        "Sync done: "
        f"scheduled={len(report.scheduled)} rescheduled={len(report.rescheduled)} "
        f"unchanged={len(report.unchanged)} cancelled={len(report.cancelled)} "
        f"failures={report.failures}"
    )


def parse_add_args(args: list[str]) -> tuple[str, DeadlineIntent, str | None, str | None]:
    """
    "/add Read chapter 3 @2026-02-10 09:30" -> ("Read chapter 3", TIME, "2026-02-10", "09:30")

    The deadline starts at the first token beginning with '@'; an optional HH:MM follows it.
    """
    text_parts: list[str] = []
    date: str | None = None
    time: str | None = None

    i = 0
    while i < len(args):
        tok = args[i]
        if tok.startswith("@") and date is None:
            date = tok[1:]
            if i + 1 < len(args):
                nxt = args[i + 1]
                try:
                    time_to_minutes(nxt)
                    time = nxt
                    i += 1
                except MalformedTimeError:
                    pass
        else:
            text_parts.append(tok)
        i += 1

    text = " ".join(text_parts).strip()
    if date is None:
        return text, DeadlineIntent.NONE, None, None
    parse_date(date)
    if time is None:
        return text, DeadlineIntent.DATE, date, None
    return text, DeadlineIntent.TIME, date, time


def _resolve_item(state: AppState, raw: str) -> ActionItem | None:
    return state.task_store.get_item(raw) or state.task_store.find_by_prefix(raw)


# ---- task commands ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_add(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /add <text> [@YYYY-MM-DD [HH:MM]]"
    try:
        text, intent, date, time = parse_add_args(args)
        item = create_task(state, text=text, deadline=intent, date=date, time=time)
    except (MalformedDateError, MalformedTimeError, ValueError) as e:
        return f"Cannot add task: {e}"
    return f"Added {_short(item)}: {item.text} ({item.deadline_class.value})"


LIST_VIEWS = ("all", "now", "upcoming", "unscheduled")


def cmd_list(state: AppState, args: list[str]) -> str:
    """
    /list              -> open tasks
    /list all          -> including done
    /list now          -> timed tasks due today
    /list upcoming     -> date-only tasks grouped by day
    /list unscheduled  -> tasks without a deadline
    """
    view = args[0].lower() if args else ""
    if view and view not in LIST_VIEWS:
        return f"Usage: /list [{'|'.join(LIST_VIEWS)}]"

    items = state.task_store.list_items(include_completed=view == "all")

    if view == "now":
        items = select_now_items(items, local_now())
    elif view == "unscheduled":
        items = select_unscheduled_items(items)
    elif view == "upcoming":
        groups = select_upcoming_groups(items)
        if not groups:
            return "No tasks."
        lines: list[str] = []
        for day, group in groups:
            lines.append(f"{friendly_date(day)}:")
            lines.extend(f"  {_format_item(i)}" for i in group)
        return "\n".join(lines)

    if not items:
        return "No tasks."
    return "\n".join(_format_item(i) for i in items)


def _set_done(state: AppState, args: list[str], completed: bool) -> str:
    if not args:
        return f"Usage: /{'done' if completed else 'undo'} <id>"
    item = _resolve_item(state, args[0])
    if item is None:
        return f"No task matches {args[0]!r}."
    if not set_task_completed(state, item.id, completed):
        return f"Task {_short(item)} is already {'done' if completed else 'open'}."
    return f"Task {_short(item)} marked {'done' if completed else 'open'}."


def cmd_done(state: AppState, args: list[str]) -> str:
    return _set_done(state, args, True)


def cmd_undo(state: AppState, args: list[str]) -> str:
    return _set_done(state, args, False)


def cmd_del(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /del <id>"
    item = _resolve_item(state, args[0])
    if item is None:
        return f"No task matches {args[0]!r}."
    delete_task(state, item.id)
    return f"Deleted {_short(item)}."


def cmd_edit(state: AppState, args: list[str]) -> str:
    usage = "Usage: /edit <id> [text] [@YYYY-MM-DD [HH:MM] | @none]"
    if len(args) < 2:
        return usage
    item = _resolve_item(state, args[0])
    if item is None:
        return f"No task matches {args[0]!r}."

    rest = args[1:]
    clear_deadline = "@none" in (a.lower() for a in rest)
    rest = [a for a in rest if a.lower() != "@none"]

    try:
        text, intent, date, time = parse_add_args(rest)
        if clear_deadline:
            if date is not None:
                return usage
            deadline: DeadlineIntent | None = DeadlineIntent.NONE
        else:
            deadline = intent if date is not None else None
        if not text and deadline is None:
            return usage
        updated = update_task(state, item.id, text=text or None, deadline=deadline, date=date, time=time)
    except (MalformedDateError, MalformedTimeError, ValueError) as e:
        return f"Cannot edit task: {e}"

    if updated is None:
        return f"No task matches {args[0]!r}."
    return f"Updated {_short(updated)}: {_format_item(updated)}"


def cmd_note(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /note <id> [text]  (no text clears the note)"
    item = _resolve_item(state, args[0])
    if item is None:
        return f"No task matches {args[0]!r}."
    update_task_notes(state, item.id, " ".join(args[1:]) or None)
    return f"Notes updated for {_short(item)}."


# ---- timetable commands ----


def cmd_now(state: AppState, args: list[str]) -> str:
    slots = state.timetable_store.list_slots()
    if not slots:
        return "No timetable locked yet. Use /timetable load <file.json>."
    return describe(resolve(slots, local_now()))


def cmd_today(state: AppState, args: list[str]) -> str:
    now = local_now()
    slots = today_schedule(state.timetable_store.list_slots(), now)
    if not slots:
        return "No lectures today."
    lines = []
    for s in slots:
        where = f" @ {s.location}" if s.location else ""
        lines.append(
            f"{format_time_12h(s.start_time)} - {format_time_12h(s.end_time)}  {s.subject_name} ({s.type.value}){where}"
        )
    return "\n".join(lines)


def cmd_timetable(
    state: AppState,
    args: list[str],
    emit: CommandEmitter | None = None,
) -> str:
    """
    /timetable            -> show lock info
    /timetable load FILE  -> replace the locked timetable from a JSON export
    """
    if not args:
        record = state.timetable_store.get_record()
        if record is None:
            return "No timetable locked yet. Use /timetable load <file.json>."
        return (
            f"Timetable locked at {record.locked_at}: {len(record.slots)} slots "
            f"(class={record.class_name or '-'} division={record.division or '-'})"
        )

    if args[0].lower() != "load" or len(args) < 2:
        return "Usage: /timetable load <file.json>"

    path = " ".join(args[1:])
    try:
        slots, meta = load_slots_json(path)
    except (OSError, json.JSONDecodeError, ValueError) as e:
        return f"Cannot load timetable: {e}"

    if emit:
        emit(f"[TIMETABLE] Locking {len(slots)} slots...")

    state.timetable_store.save_locked_timetable(
        slots,
        class_name=str(meta.get("class_name", "")),
        division=str(meta.get("division", "")),
        batch=meta.get("batch"),
    )
    request_sync(state)
    return f"Timetable locked: {len(slots)} slots."


# ---- notification commands ----


def cmd_sync(state: AppState, args: list[str]) -> str:
    return _format_report(request_sync(state))


def cmd_status(state: AppState, args: list[str]) -> str:
    settings = state.settings
    records = state.reconciler.records
    status_line = state.notifier.status_line or "-"
    return (
        "Status:\n"
        f"  Open tasks: {len(state.task_store.list_items(include_completed=False))}\n"
        f"  Timetable slots: {len(state.timetable_store.list_slots())}\n"
        f"  Tracked notifications: {len(records)}\n"
        f"  Timetable status: {status_line}\n"
        f"  Date-only reminder time: {getattr(settings, 'date_only_hour', 9):02d}:"
        f"{getattr(settings, 'date_only_minute', 0):02d}\n"
        f"  Background loops: {'running' if state.runner is not None else 'off'}"
    )


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("add", cmd_add, help_text="Add a task: /add <text> [@YYYY-MM-DD [HH:MM]].")
registry.register("list", cmd_list, help_text="List tasks: /list [all|now|upcoming|unscheduled].", aliases=["ls"])
registry.register("done", cmd_done, help_text="Mark a task done: /done <id>.")
registry.register("undo", cmd_undo, help_text="Reopen a task: /undo <id>.")
registry.register("del", cmd_del, help_text="Delete a task: /del <id>.", aliases=["rm"])
registry.register("edit", cmd_edit, help_text="Edit a task: /edit <id> [text] [@YYYY-MM-DD [HH:MM] | @none].")
registry.register("note", cmd_note, help_text="Set task notes: /note <id> <text>.")
registry.register("now", cmd_now, help_text="Current and next lecture.")
registry.register("today", cmd_today, help_text="Today's lectures.")
registry.register("timetable", cmd_timetable, help_text="Timetable info or /timetable load <file.json>.")
registry.register("sync", cmd_sync, help_text="Reconcile notifications now.")
registry.register("status", cmd_status, help_text="Show tasks/timetable/notification status.")
