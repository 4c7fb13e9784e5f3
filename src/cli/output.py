"""CLI output formatters for Rich tables and JSON.

Provides human-readable Rich table output (default) and machine-parseable
JSON output (--json flag). All formatting goes through these functions
so the CLI commands stay clean.
"""

import json

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from src.orchestrator.models.intent import AgentResponse, Operation
from src.services.chat_models import ChatThreadInfo, ChatTurn
from src.services.chat_providers import PROVIDERS
from src.services.provider_settings import ProviderSettingsState

console = Console()

# Status color map for agent responses and operations
STATUS_COLORS = {
    "success": "green",
    "completed": "green",
    "partial": "yellow",
    "pending": "yellow",
    "error": "red",
}

ROLE_COLORS = {
    "user": "green",
    "assistant": "cyan",
    "system": "dim",
}


def _render(renderable) -> str:
    with console.capture() as capture:
        console.print(renderable)
    return capture.get()


def _operation_summary(op: Operation) -> str:
    if op.error:
        return escape(op.error)
    result = op.result
    if isinstance(result, dict):
        if "files" in result:
            return f"{len(result['files'])} file(s)"
        if "name" in result:
            return str(result["name"])
    return ""


def format_agent_response(response: AgentResponse, as_json: bool = False) -> str:
    """Format one agent turn as a Rich panel with its operations, or JSON.

    Args:
        response: The agent's response.
        as_json: If True, return JSON string instead of Rich output.

    Returns:
        Formatted string output.
    """
    if as_json:
        return response.model_dump_json(indent=2)

    color = STATUS_COLORS.get(response.status, "white")
    lines = [escape(response.message)]
    if response.suggestions:
        lines.append("")
        lines.extend(f"[dim]- {s}[/dim]" for s in response.suggestions)
    panel = Panel(
        "\n".join(lines),
        title=f"[{color}]{response.status}[/{color}]",
        border_style=color,
    )
    output = _render(panel)

    if response.operations:
        table = Table(show_header=True, box=None)
        table.add_column("Operation", style="cyan")
        table.add_column("Status")
        table.add_column("Detail", style="dim")
        for op in response.operations:
            op_color = STATUS_COLORS.get(op.status.value, "white")
            table.add_row(
                op.type.value,
                f"[{op_color}]{op.status.value}[/{op_color}]",
                _operation_summary(op),
            )
        output += _render(table)
    return output


def format_thread_table(threads: list[ChatThreadInfo], as_json: bool = False) -> str:
    """Format chat threads as a Rich table or JSON.

    Args:
        threads: Threads to display, already ordered.
        as_json: If True, return JSON string instead of Rich table.
    """
    if as_json:
        return json.dumps([t.model_dump() for t in threads], indent=2)

    if not threads:
        return "No threads found."

    table = Table(title="Threads")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Title", style="white")
    table.add_column("Messages", justify="right")
    table.add_column("Updated")

    for thread in threads:
        table.add_row(
            thread.thread_id,
            thread.title,
            str(thread.message_count),
            thread.updated_at[:19],
        )
    return _render(table)


def format_thread_messages(messages: list[ChatTurn], as_json: bool = False) -> str:
    """Format a thread's messages as a transcript or JSON."""
    if as_json:
        return json.dumps([m.model_dump() for m in messages], indent=2)

    if not messages:
        return "No messages yet."

    lines = []
    for msg in messages:
        color = ROLE_COLORS.get(msg.role, "white")
        suffix = ""
        if msg.attachments:
            names = ", ".join(a.name for a in msg.attachments)
            suffix = f" [dim](attachments: {names})[/dim]"
        lines.append(f"[bold {color}]{msg.role}:[/bold {color}] {escape(msg.content)}{suffix}")
    return _render("\n".join(lines))


def format_provider_table(state: ProviderSettingsState, as_json: bool = False) -> str:
    """Format the provider catalogue with configuration and selection status.

    Args:
        state: Current provider settings.
        as_json: If True, return JSON string instead of Rich table.
    """
    if as_json:
        return json.dumps(
            {
                "providers": [
                    {
                        "id": p.id.value,
                        "name": p.name,
                        "configured": state.is_provider_configured(p.id.value),
                        "models": [m.id for m in p.models],
                    }
                    for p in PROVIDERS
                ],
                "selected_provider": state.selected_provider,
                "selected_model": state.selected_model,
            },
            indent=2,
        )

    table = Table(title="Chat Providers")
    table.add_column("", width=1)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Configured")
    table.add_column("Models", style="dim")

    for provider in PROVIDERS:
        pid = provider.id.value
        selected = "*" if pid == state.selected_provider else ""
        configured = (
            "[green]yes[/green]" if state.is_provider_configured(pid) else "[dim]no[/dim]"
        )
        models = ", ".join(
            f"[bold]{m.id}[/bold]" if pid == state.selected_provider and m.id == state.selected_model
            else m.id
            for m in provider.models
        )
        table.add_row(selected, pid, provider.name, configured, models)
    return _render(table)
