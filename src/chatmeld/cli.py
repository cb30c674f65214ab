"""
ChatMeld console runner.

Loads an agent roster from a JSON file, opens a fresh conversation and lets
the conductor run it while the human chats from stdin.

Run with:
    chatmeld agents.json
    python -m chatmeld agents.json --title "Coffee break"

Roster file: a JSON list of agents, e.g.
    [{"name": "Alice", "description": "A curious botanist", "traits": "warm"}]

Plain text sends a message; slash commands control the conductor (see /help).
"""

from __future__ import annotations

import argparse
import asyncio
import json
from functools import partial
from pathlib import Path

from rich.console import Console
from rich.table import Table

from chatmeld import __version__
from chatmeld.clients.llm_gateway import LLMGateway
from chatmeld.conversation.conductor import Conductor, ConductorTimings
from chatmeld.conversation.models import Agent, Conversation, Message
from chatmeld.core.config import Settings, get_settings
from chatmeld.core.constants import USER_DISPLAY_NAME, USER_SENDER_ID
from chatmeld.core.logging import configure_logging, get_logger
from chatmeld.stores import (
    ConversationStore,
    InMemoryKeyValueBackend,
    JsonFileKeyValueBackend,
    MessageStore,
    SettingsStore,
)


logger = get_logger(__name__)

_AGENT_STYLES = ("cyan", "magenta", "green", "yellow", "blue", "red")


def load_roster(path: str | Path) -> list[Agent]:
    """Read agents from a JSON list.

    ``default_model`` may be omitted; the default model of the first
    provider with a key is used then.

    Raises:
        ValueError: If the file is not a list of objects with a name and
            description.
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"Roster must be a JSON list: {path}")

    agents = []
    for entry in data:
        if not isinstance(entry, dict) or not entry.get("name") or "description" not in entry:
            raise ValueError(f"Each agent needs a name and a description: {entry!r}")
        agents.append(Agent.from_dict({"default_model": "", **entry}))
    return agents


class ChatConsole:
    """Interactive chat session on top of the reference stores."""

    def __init__(
        self,
        agents: list[Agent],
        settings: Settings,
        title: str = "Group chat",
        time_scale: float = 1.0,
    ) -> None:
        self.console = Console()
        self.settings = settings
        self.settings_store = SettingsStore(JsonFileKeyValueBackend(settings.settings_path), settings)
        self.conversations = ConversationStore(InMemoryKeyValueBackend())
        self.messages = MessageStore(InMemoryKeyValueBackend())
        self.gateway = LLMGateway()
        self.conversation = Conversation(title=title, agents=agents)

        timings = ConductorTimings.from_settings(settings)
        timings.time_scale = time_scale
        self.conductor = Conductor(
            self.conversation.id,
            self.conversations,
            self.messages,
            self.settings_store,
            self.gateway,
            timings,
        )

        self._styles = {
            agent.id: _AGENT_STYLES[i % len(_AGENT_STYLES)] for i, agent in enumerate(agents)
        }
        self._shown: set[str] = set()
        self._running = True

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    async def run(self) -> int:
        await self.settings_store.init()
        await self.conversations.add(self.conversation)

        if not self.settings_store.credentials.has_any():
            self.console.print(
                "[red]No API key configured.[/red] Set CHATMELD_OPENAI_API_KEY or "
                "CHATMELD_GOOGLE_API_KEY."
            )
            await self.gateway.close()
            return 1

        self.console.rule(f"[bold]{self.conversation.title}[/bold]")
        self._print_agents()
        self.console.print("[dim]Type a message, or /help for commands.[/dim]")

        unsubscribe = self.messages.subscribe(self._print_new_messages)
        self.conductor.attach()
        try:
            await self._repl_loop()
        finally:
            unsubscribe()
            await self.conductor.close()
            await self.gateway.close()
        return 0

    async def _repl_loop(self) -> None:
        loop = asyncio.get_running_loop()

        while self._running:
            try:
                line = await loop.run_in_executor(None, partial(input, ""))
            except EOFError:
                break

            line = line.strip()
            if not line:
                continue

            if line.startswith("/"):
                await self._dispatch_command(line)
            else:
                await self.messages.add_message(self.conversation.id, USER_SENDER_ID, line)

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    async def _dispatch_command(self, line: str) -> None:
        parts = line.split(maxsplit=1)
        cmd = parts[0].lower()
        arg = parts[1] if len(parts) > 1 else ""

        handlers = {
            "/force": self._cmd_force,
            "/next": self._cmd_next,
            "/pause": self._cmd_pause,
            "/resume": self._cmd_resume,
            "/clear": self._cmd_clear,
            "/agents": self._cmd_agents,
            "/help": self._cmd_help,
            "/quit": self._cmd_quit,
        }

        handler = handlers.get(cmd)
        if handler is None:
            self.console.print(f"[red]Unknown command: {cmd}[/red]  (try /help)")
            return

        await handler(arg)

    async def _cmd_force(self, arg: str) -> None:
        agent = self._find_agent(arg)
        if agent is None:
            self.console.print(f"[red]No agent named {arg!r}[/red]")
            return
        self.conductor.force_turn(agent.id)

    async def _cmd_next(self, arg: str) -> None:
        if self.conductor.advance_one() is None:
            self.console.print("[dim]A turn is already in progress.[/dim]")

    async def _cmd_pause(self, arg: str) -> None:
        await self.conductor.pause()
        self.console.print("[dim]Auto-advance paused.[/dim]")

    async def _cmd_resume(self, arg: str) -> None:
        await self.conductor.resume()
        self.console.print("[dim]Auto-advance resumed.[/dim]")

    async def _cmd_clear(self, arg: str) -> None:
        self.conductor.stop()
        await self.messages.clear_messages(self.conversation.id)
        self._shown.clear()
        self.console.rule("[dim]history cleared[/dim]")

    async def _cmd_agents(self, arg: str) -> None:
        self._print_agents()

    async def _cmd_help(self, arg: str) -> None:
        table = Table(show_header=False, box=None)
        table.add_row("/force <name>", "Make an agent speak now")
        table.add_row("/next", "Let one agent speak, then stop")
        table.add_row("/pause", "Turn auto-advance off")
        table.add_row("/resume", "Turn auto-advance on")
        table.add_row("/clear", "Delete the conversation history")
        table.add_row("/agents", "Show the roster")
        table.add_row("/quit", "Leave")
        self.console.print(table)

    async def _cmd_quit(self, arg: str) -> None:
        self._running = False

    # -------------------------------------------------------------------------
    # Output
    # -------------------------------------------------------------------------

    def _find_agent(self, name: str) -> Agent | None:
        wanted = name.strip().lower()
        conversation = self.conversations.cached(self.conversation.id) or self.conversation
        for agent in conversation.effective_agents():
            if agent.name.lower() == wanted:
                return agent
        return None

    def _print_agents(self) -> None:
        table = Table(title="Agents", show_lines=False)
        table.add_column("Name", style="bold")
        table.add_column("Description")
        table.add_column("Model", style="dim")
        for agent in self.conversation.effective_agents():
            table.add_row(
                f"[{self._styles.get(agent.id, 'white')}]{agent.name}[/]",
                agent.description,
                agent.model or agent.default_model or "default",
            )
        self.console.print(table)

    def _print_new_messages(self) -> None:
        for message in self.messages.messages_for(self.conversation.id):
            if message.id in self._shown:
                continue
            self._shown.add(message.id)
            if not message.is_from_user:
                self._print_message(message)

    def _print_message(self, message: Message) -> None:
        agent = self.conversation.effective_agent(message.agent_id)
        name = agent.name if agent else USER_DISPLAY_NAME
        style = self._styles.get(message.agent_id, "white")
        self.console.print(f"[bold {style}]{name}[/]: {message.content}")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="chatmeld",
        description="Group chat between you and several AI agents",
    )
    parser.add_argument("roster", help="JSON file with the agent roster")
    parser.add_argument("--title", default="Group chat", help="Conversation title")
    parser.add_argument(
        "--time-scale",
        type=float,
        default=1.0,
        help="Multiplier for every conductor wait (0.5 = twice as fast)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging()
    settings = get_settings()

    try:
        agents = load_roster(args.roster)
    except (OSError, ValueError) as e:
        Console(stderr=True).print(f"[red]Cannot load roster:[/red] {e}")
        return 2

    logger.info("Starting chat", roster=args.roster, agents=len(agents))
    session = ChatConsole(agents, settings, title=args.title, time_scale=args.time_scale)
    try:
        return asyncio.run(session.run())
    except KeyboardInterrupt:
        return 130

