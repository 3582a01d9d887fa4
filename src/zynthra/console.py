"""Interactive console front end for one user's session."""

from __future__ import annotations

import asyncio
import json
import sys
from typing import TextIO

from zynthra.app import ZynthraApp
from zynthra.log import get_logger

logger = get_logger(__name__)

HELP_TEXT = """Commands:
  /history    show the conversation window
  /stats      show usage and learning statistics
  /allclear   end an active SOS and notify contacts
  /reset      clear the conversation window
  /quit       leave"""


class ConsoleChat:
    """Reads lines, routes slash commands locally and everything else to the session."""

    def __init__(self, app: ZynthraApp, user_id: str, out: TextIO = sys.stdout):
        self._app = app
        self._user_id = user_id
        self._out = out

    def _print(self, text: str) -> None:
        print(text, file=self._out, flush=True)

    async def handle_line(self, line: str) -> bool:
        """Process one input line. Returns False when the user wants to leave."""
        text = line.strip()
        if not text:
            return True

        command = text.lower()
        if command in ("/quit", "/exit"):
            return False

        if command == "/help":
            self._print(HELP_TEXT)
            return True

        if command == "/reset":
            await self._app.sessions.reset_session(self._user_id)
            self._print("Conversation cleared. Starting fresh.")
            return True

        session = await self._app.sessions.get_session(self._user_id)

        if command == "/history":
            if not session.history:
                self._print("(no conversation yet)")
            for turn in session.history:
                self._print(f"[{turn.timestamp:%H:%M:%S}] {turn.role.value}: {turn.content}")
            return True

        if command == "/stats":
            self._print(json.dumps(session.stats(), indent=2))
            return True

        if command == "/allclear":
            summary = await self._app.all_clear(self._user_id)
            if summary is None:
                self._print("No SOS is active.")
            else:
                self._print(f"All-clear sent to {summary.success_count} contact(s).")
            return True

        reply = await session.process_input(text)
        self._print(f"zynthra> {reply.response}")
        if reply.action is not None:
            self._print(f"  action: {json.dumps(reply.action.to_dict())}")
        return True

    async def run(self) -> None:
        self._print(f"Zynthra ready for '{self._user_id}'. Type /help for commands.")
        while True:
            try:
                line = await asyncio.to_thread(input, "you> ")
            except EOFError:
                break
            if not await self.handle_line(line):
                break
        logger.info("console_closed", user_id=self._user_id)
