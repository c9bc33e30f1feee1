"""Parsing and formatting for the agenthub Slack slash command, and the
interfaces the Slack handler depends on."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Optional, Protocol

_VALID_BOT_NAME = re.compile(r"[a-z0-9-]+")
_LEADING_INT = re.compile(r"[ \t\r]*([+-]?\d+)")

_SUBCOMMANDS = frozenset({"bind", "list", "remove", "chatty"})


class CommandError(ValueError):
    """Raised when slash command text cannot be parsed."""


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


@dataclass(frozen=True)
class BindCommand:
    """Parsed `/agenthub bind host:port name`."""

    host: str
    port: int
    name: str


@dataclass(frozen=True)
class TaskCommand:
    """Parsed `/agenthub <description> [@botname]`; empty bot_name means any bot."""

    description: str = ""
    bot_name: str = ""


@dataclass
class BotSummary:
    """Minimal view of a registered instance for Slack messages."""

    name: str
    host: str = ""
    port: int = 0
    is_alive: bool = False
    chatty: bool = False
    specializations: list[str] = field(default_factory=list)


@dataclass
class SlackConfig:
    """Slack-specific configuration used by the handler."""

    command_prefix: str = ""
    channel_id: str = ""
    agenthub_url: str = ""
    registration_token: str = ""


class BotRegistry(Protocol):
    """Registry of bot instances per channel."""

    def register_bot(self, channel_id: str, name: str, host: str, port: int,
                     owner_slack_user: str) -> None:
        """Register a bot in a channel."""

    def unregister_bot(self, channel_id: str, name: str, owner_slack_user: str) -> None:
        """Remove a bot from a channel."""

    def list_bots(self, channel_id: str) -> list[BotSummary]:
        """Return the bots registered in a channel."""

    def set_chatty(self, channel_id: str, name: str, chatty: bool) -> None:
        """Mark a bot chatty or not."""

    def alive_bots(self, channel_id: str) -> list[BotSummary]:
        """Return the live bots of a channel."""


class TaskManager(Protocol):
    """Creates work items and routes them to bots."""

    def create_and_route(self, desc: str, bot_name: str, actor: str) -> tuple[str, str]:
        """Create a task and return (task_id, assigned_bot)."""


class AIChatter(Protocol):
    """Answers natural-language messages."""

    def respond(self, user_message: str, channel_id: str) -> str:
        """Return a reply to user_message."""


class OpenclawChecker(Protocol):
    """Checks reachability of a bot and sends it directives."""

    def check_health(self, host: str, port: int) -> None:
        """Raise if host:port is not reachable."""

    def send_mention_only(self, host: str, port: int) -> None:
        """Tell the bot to answer only when mentioned."""

    def send_onboarding(self, host: str, port: int, agenthub_url: str,
                        reg_token: str, bot_name: str) -> None:
        """Send the onboarding directive to a newly bound bot."""


class InboxEnqueuer(Protocol):
    """Buffers a message for a named agent to poll."""

    def enqueue(self, bot_name: str, sender: str, channel: str, text: str) -> str:
        """Queue a message and return its identifier."""


class AgentChannelLookup(Protocol):
    """Resolves a Slack channel to the agent registered to it."""

    def agent_by_slack_channel(self, channel_id: str) -> str:
        """Return the agent name for channel_id, or "" if none."""


@dataclass
class Deps:
    """Dependencies injected into the Slack handler."""

    bot_registry: BotRegistry
    task_manager: Optional[TaskManager]
    ai_chat: AIChatter
    openclaw_check: OpenclawChecker
    inbox: Optional[InboxEnqueuer] = None
    agent_channel_lookup: Optional[AgentChannelLookup] = None
    config: SlackConfig = field(default_factory=SlackConfig)


def parse_host_port(host_port: str) -> tuple[str, int]:
    """Split "host:port" at its last colon into (host, port)."""
    idx = host_port.rfind(":")
    if idx < 0:
        raise CommandError("missing port")
    host, port_text = host_port[:idx], host_port[idx + 1:]
    if not host:
        raise CommandError("missing host")
    match = _LEADING_INT.match(port_text)
    port = int(match.group(1)) if match else 0
    if not 0 < port <= 65535:
        raise CommandError(f"invalid port {_quote(port_text)}")
    return host, port


def parse_bind(text: str) -> BindCommand:
    """Parse "bind host:port unique-name"."""
    parts = text.split()
    if len(parts) < 3 or parts[0] != "bind":
        raise CommandError("usage: /agenthub bind host:port unique-name")
    host_port, name = parts[1], parts[2]
    if not _VALID_BOT_NAME.fullmatch(name):
        raise CommandError(f"unique-name must match [a-z0-9-]+, got {_quote(name)}")
    try:
        host, port = parse_host_port(host_port)
    except CommandError as exc:
        raise CommandError(f"invalid host:port {_quote(host_port)}: {exc}") from exc
    return BindCommand(host=host, port=port, name=name)


def parse_task(text: str) -> TaskCommand:
    """Parse a task description with an optional trailing @botname."""
    text = text.strip()
    if not text:
        return TaskCommand()
    *rest, last = text.split()
    if last.startswith("@"):
        return TaskCommand(description=" ".join(rest).strip(), bot_name=last[1:])
    return TaskCommand(description=text)


def parse_command(text: str) -> str:
    """Return "bind", "list", "remove", "chatty" or "task" for command text."""
    words = text.split()
    if words and words[0] in _SUBCOMMANDS:
        return words[0]
    return "task"


def format_bot_list(bots: Optional[list[BotSummary]]) -> str:
    """Format registered bots as a Slack message."""
    if not bots:
        return "No bots registered in this channel."
    lines = ["*Registered bots:*\n"]
    for bot in bots:
        status = ":large_green_circle: online" if bot.is_alive else ":red_circle: offline"
        chatty = " (chatty)" if bot.chatty else ""
        specs = f" ({', '.join(bot.specializations)})" if bot.specializations else ""
        lines.append(
            f"• *{bot.name}* — {bot.host}:{bot.port} — {status}{chatty}{specs}\n"
        )
    return "".join(lines)