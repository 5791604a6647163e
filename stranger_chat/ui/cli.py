from prompt_toolkit import PromptSession
from prompt_toolkit.patch_stdout import patch_stdout
from rich.console import Console
from rich.panel import Panel
from rich.text import Text
from rich.theme import Theme

from stranger_chat.core.models import LogKind, SessionSnapshot
from stranger_chat.core.session_manager import SessionManager
from stranger_chat.core.state_machine import EndReason, SessionPhase
from stranger_chat.utils.error_codes import ValidationError

custom_theme = Theme({
    "info": "dim cyan",
    "warning": "magenta",
    "danger": "bold red",
    "success": "bold green",
    "chat_peer": "green",
    "chat_self": "cyan",
    "system": "dim white",
})

console = Console(theme=custom_theme)

STATUS_LABELS = {
    SessionPhase.DISCONNECTED: "not connected",
    SessionPhase.CONNECTING: "connecting to server",
    SessionPhase.MATCHING: "matching",
    SessionPhase.CHATTING: "chatting",
}

HELP_TEXT = "[dim]Enter sends. /ng flags the partner, /next searches again, /quit exits.[/dim]"


def render_status(snapshot: SessionSnapshot) -> Text:
    status = Text(f"status: {STATUS_LABELS[snapshot.phase]}", style="info")
    if snapshot.end_reason is EndReason.MANUAL:
        status.append(" (ended manually)", style="warning")
    if snapshot.phase is SessionPhase.CHATTING and snapshot.partner:
        status.append(f" | partner: {snapshot.partner.partner_nickname}", style="chat_peer")
        status.append(f" (room: {snapshot.partner.room_id[:8]}...)", style="system")
    return status


def render_entry(entry) -> Text:
    if entry.kind is LogKind.SYSTEM:
        return Text.assemble(("-- > ", "system"), (entry.text, "system"))
    style = "chat_self" if entry.kind is LogKind.SELF else "chat_peer"
    return Text.assemble((entry.nickname or "", style), (" > ", "system"), entry.text)


class StrangerChatCLI:
    def __init__(self, session_manager=None):
        self.session_manager = session_manager or SessionManager(self.ui_callback)
        self.session_manager.ui_callback = self.ui_callback
        self.session = PromptSession()
        self.running = True

        self._last_phase = None
        self._log_head = None
        self._printed = 0
        self._partner_typing = False

    def ui_callback(self, snapshot: SessionSnapshot):
        # Called from the asyncio loop after every session event
        if snapshot.phase is not self._last_phase:
            self._last_phase = snapshot.phase
            console.print(render_status(snapshot))

        head = snapshot.log[0].id if snapshot.log else None
        if head != self._log_head:
            # A new connection attempt started a fresh log
            self._log_head = head
            self._printed = 0

        for entry in snapshot.log[self._printed:]:
            console.print(render_entry(entry))
        self._printed = len(snapshot.log)

        if snapshot.partner_typing and not self._partner_typing:
            console.print("[system].. > partner is typing...[/system]")
        self._partner_typing = snapshot.partner_typing

    def on_buffer_changed(self, buffer):
        self.session_manager.update_draft(buffer.text)
        if buffer.text and self.session_manager.phase is SessionPhase.CHATTING:
            self.session_manager.keystroke()

    async def prompt_nickname(self) -> str:
        while True:
            nickname = await self.session.prompt_async("Nickname: ")
            try:
                self.session_manager.connect(nickname)
                return nickname.strip()
            except ValidationError as e:
                console.print(f"[warning]{e.message}[/warning]")

    async def handle_line(self, text: str, nickname: str):
        command = text.strip().lower()
        if command == "/quit":
            await self.session_manager.shutdown()
            self.running = False
        elif command == "/ng":
            self.session_manager.flag()
        elif command == "/next":
            if self.session_manager.phase is SessionPhase.DISCONNECTED:
                self.session_manager.connect(nickname)
            else:
                console.print("[warning]Already connected. Use /quit to stop.[/warning]")
        elif command:
            try:
                self.session_manager.send(text)
            except ValidationError as e:
                console.print(f"[warning]{e.message}[/warning]")

    async def run(self):
        console.clear()
        console.print(Panel.fit("[bold white]STRANGER CHAT[/bold white]\n[dim]Anonymous 1:1 chat.[/dim]", style="blue"))

        with patch_stdout():
            nickname = await self.prompt_nickname()
            console.print(HELP_TEXT)
            self.session.default_buffer.on_text_changed += self.on_buffer_changed

            while self.running:
                try:
                    text = await self.session.prompt_async("> ")
                    await self.handle_line(text, nickname)
                except (EOFError, KeyboardInterrupt):
                    await self.session_manager.shutdown()
                    break
