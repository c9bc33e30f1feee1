"""Slack event dispatch for agenthub: slash commands, mentions and DMs."""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Protocol

from agenthub.slash import (
    CommandError,
    Deps,
    format_bot_list,
    parse_bind,
    parse_command,
    parse_task,
)

log = logging.getLogger(__name__)

_GREETING = ":wave: I'm agenthub. DM me with your task or use `/agenthub <task> [@agent]`."
_QUEUED = ":receipt: Got it — your request has been queued."
_TASK_USAGE = (
    "Usage: `/agenthub <task description> [@botname]`\n"
    "Or: `/agenthub bind|list|remove|chatty`"
)
_AGENT_PREFIX = re.compile(r"@([^ :]+)")


class EventType(enum.Enum):
    """Kinds of events delivered over a Socket Mode connection."""

    SLASH_COMMAND = "slash_commands"
    EVENTS_API = "events_api"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CONNECTION_ERROR = "connection_error"
    OTHER = "other"


@dataclass
class SlashCommand:
    """A slash command invocation."""

    text: str = ""
    channel_id: str = ""
    user_id: str = ""
    response_url: str = ""


@dataclass
class AppMentionEvent:
    """A message that mentions the app."""

    text: str = ""
    channel: str = ""
    timestamp: str = ""
    user: str = ""


@dataclass
class MessageEvent:
    """A message posted in a channel or DM."""

    text: str = ""
    channel: str = ""
    user: str = ""
    subtype: str = ""
    bot_id: str = ""


@dataclass
class ApiEvent:
    """An Events API envelope: the inner event type and its payload."""

    type: str
    data: Any = None


@dataclass
class SocketEvent:
    """An event received over Socket Mode, with the request to acknowledge."""

    type: EventType
    data: Any = None
    request: Any = None


class MessagePoster(Protocol):
    """Posts messages to Slack."""

    def post_message(self, channel: str, text: str, thread_ts: Optional[str] = None,
                     response_url: Optional[str] = None) -> None:
        """Post text to channel, optionally in a thread or via a response URL."""


def is_config_error(text: str) -> bool:
    """Return True for internal configuration notices not meant for users."""
    return "not configured" in text or "openai_api_key" in text


def _trim_leading(text: str) -> str:
    return text.lstrip(" \t")


def parse_agent_prefix(text: str) -> tuple[str, str]:
    """Split "@botname task" or "@botname: task" into (botname, task).

    Returns ("", text) when there is no usable prefix.
    """
    text = _trim_leading(text)
    match = _AGENT_PREFIX.match(text)
    if not match:
        return "", text
    rest = text[match.end():].lstrip(": ")
    if not rest:
        return "", text
    return match.group(1), rest


def strip_mention(text: str) -> str:
    """Remove a leading <@USERID> mention from text."""
    if text.startswith("<"):
        end = text.find(">")
        if end >= 0:
            return _trim_leading(text[end + 1:])
    return text


def split_args(text: str, n: int) -> list[str]:
    """Split text on spaces into at most n parts; the last part keeps the rest."""
    parts: list[str] = []
    remaining = text
    while len(parts) < n - 1:
        head, sep, tail = remaining.partition(" ")
        if not sep:
            break
        parts.append(head)
        remaining = _trim_leading(tail)
    if remaining:
        parts.append(remaining)
    return parts


class Handler:
    """Dispatches Slack events to the agenthub command and chat handlers."""

    def __init__(self, poster: MessagePoster, deps: Deps,
                 ack: Optional[Callable[[Any], None]] = None):
        self.poster = poster
        self.deps = deps
        self._ack = ack

    def run(self, events: Iterable[SocketEvent]) -> None:
        """Handle every event from events until it is exhausted."""
        for event in events:
            self.handle_event(event)

    def handle_event(self, event: SocketEvent) -> None:
        """Acknowledge and dispatch one Socket Mode event."""
        if event.type is EventType.SLASH_COMMAND:
            if not isinstance(event.data, SlashCommand):
                return
            self._acknowledge(event)
            self.handle_slash_command(event.data)
        elif event.type is EventType.EVENTS_API:
            if not isinstance(event.data, ApiEvent):
                return
            self._acknowledge(event)
            self.handle_api_event(event.data)
        elif event.type is EventType.CONNECTING:
            log.info("slack: connecting")
        elif event.type is EventType.CONNECTED:
            log.info("slack: connected")
        elif event.type is EventType.CONNECTION_ERROR:
            log.error("slack: connection error: %s", event.data)

    def _acknowledge(self, event: SocketEvent) -> None:
        if self._ack is not None:
            self._ack(event.request)

    def _post(self, channel: str, text: str, **options: Any) -> None:
        try:
            self.poster.post_message(channel, text, **options)
        except Exception:
            log.exception("slack: could not post message to %s", channel)

    def handle_slash_command(self, cmd: SlashCommand) -> None:
        """Run a slash command and post its reply (or error) to the channel."""
        handlers = {
            "bind": self.handle_bind,
            "list": self.handle_list,
            "remove": self.handle_remove,
            "chatty": self.handle_chatty,
        }
        action = handlers.get(parse_command(cmd.text), self.handle_task)
        try:
            reply = action(cmd)
        except Exception as exc:
            reply = f":x: Error: {exc}"
        if reply:
            self._post(cmd.channel_id, reply, response_url=cmd.response_url)

    def handle_bind(self, cmd: SlashCommand) -> str:
        """Bind a bot to the channel after checking it is reachable."""
        bind = parse_bind(cmd.text)
        checker = self.deps.openclaw_check
        try:
            checker.check_health(bind.host, bind.port)
        except Exception as exc:
            raise CommandError(
                f"cannot reach {bind.host}:{bind.port} — is openclaw running? ({exc})"
            ) from exc
        try:
            self.deps.bot_registry.register_bot(
                cmd.channel_id, bind.name, bind.host, bind.port, cmd.user_id
            )
        except Exception as exc:
            raise CommandError(f"registering bot: {exc}") from exc

        config = self.deps.config
        onboarded = False
        if config.agenthub_url and config.registration_token:
            try:
                checker.send_onboarding(bind.host, bind.port, config.agenthub_url,
                                        config.registration_token, bind.name)
                onboarded = True
            except Exception as exc:
                log.warning("slack: could not send onboarding directive to %s: %s",
                            bind.name, exc)
        if not onboarded:
            try:
                checker.send_mention_only(bind.host, bind.port)
            except Exception as exc:
                log.warning("slack: could not set mention-only on %s:%d: %s",
                            bind.host, bind.port, exc)
        return (f":white_check_mark: Bot *{bind.name}* bound to this channel "
                "and briefed on BOTJILE task policy.")

    def handle_list(self, cmd: SlashCommand) -> str:
        """Return the formatted list of bots in the channel."""
        try:
            bots = self.deps.bot_registry.list_bots(cmd.channel_id)
        except Exception as exc:
            raise CommandError(f"listing bots: {exc}") from exc
        return format_bot_list(bots)

    def handle_remove(self, cmd: SlashCommand) -> str:
        """Unregister a bot from the channel."""
        parts = split_args(cmd.text, 2)
        if len(parts) < 2:
            raise CommandError("usage: /agenthub remove unique-name")
        name = parts[1]
        self.deps.bot_registry.unregister_bot(cmd.channel_id, name, cmd.user_id)
        return f":wastebasket: Bot *{name}* removed."

    def handle_chatty(self, cmd: SlashCommand) -> str:
        """Mark a bot in the channel as chatty."""
        parts = split_args(cmd.text, 2)
        if len(parts) < 2:
            raise CommandError("usage: /agenthub chatty unique-name")
        name = parts[1]
        self.deps.bot_registry.set_chatty(cmd.channel_id, name, True)
        return f":speech_balloon: Bot *{name}* is now chatty."

    def handle_task(self, cmd: SlashCommand) -> str:
        """Create a task from the command text and route it to a bot."""
        task = parse_task(cmd.text)
        if not task.description:
            return _TASK_USAGE
        try:
            task_id, assigned = self.deps.task_manager.create_and_route(
                task.description, task.bot_name, cmd.user_id
            )
        except Exception as exc:
            raise CommandError(f"creating task: {exc}") from exc
        return f":white_check_mark: Task `{task_id}` created and assigned to *{assigned}*."

    def handle_api_event(self, event: ApiEvent) -> None:
        """Handle an Events API event: app mentions and direct messages."""
        if event.type == "app_mention":
            if isinstance(event.data, AppMentionEvent):
                self._handle_mention(event.data)
        elif event.type == "message":
            if isinstance(event.data, MessageEvent):
                self._handle_message(event.data)

    def _handle_mention(self, ev: AppMentionEvent) -> None:
        try:
            response = self.deps.ai_chat.respond(strip_mention(ev.text), ev.channel)
        except Exception as exc:
            log.error("slack: AI error: %s", exc)
            return
        if not response or is_config_error(response):
            response = _GREETING
        self._post(ev.channel, response, thread_ts=ev.timestamp)

    def _handle_message(self, ev: MessageEvent) -> None:
        if ev.subtype or ev.bot_id:
            return
        is_dm = ev.channel.startswith("D")
        deps = self.deps
        if ev.channel and not is_dm and deps.agent_channel_lookup is not None \
                and deps.inbox is not None:
            try:
                agent = deps.agent_channel_lookup.agent_by_slack_channel(ev.channel)
            except Exception:
                agent = ""
            if agent:
                deps.inbox.enqueue(agent, ev.user, ev.channel, ev.text)
                return
        if not is_dm:
            return

        task_ref = ""
        if deps.task_manager is not None and ev.text:
            target, task_text = parse_agent_prefix(ev.text)
            try:
                task_id, assigned = deps.task_manager.create_and_route(
                    task_text, target, ev.user
                )
            except Exception as exc:
                log.warning("slack: could not create task from DM: %s", exc)
            else:
                task_ref = (f":white_check_mark: Task `{task_id}` created and "
                            f"assigned to *{assigned}*.\n")
                if assigned and deps.inbox is not None:
                    deps.inbox.enqueue(assigned, ev.user, ev.channel, task_text)

        msg = task_ref
        try:
            response = deps.ai_chat.respond(ev.text, ev.channel)
        except Exception as exc:
            log.error("slack: AI error in DM: %s", exc)
        else:
            if response and not is_config_error(response):
                msg += response
        self._post(ev.channel, msg or _QUEUED)