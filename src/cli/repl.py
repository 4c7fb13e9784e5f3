"""Interactive conversational REPL for the DriveChat agent.

Provides a terminal-based chat interface with Rich rendering of each
agent turn. One ConversationalAgent is kept for the whole session so
follow-ups like "share it" resolve against earlier results.
"""

from uuid import uuid4

from rich.console import Console

from src.cli.output import format_agent_response
from src.orchestrator.agent.conversational_agent import ConversationalAgent
from src.orchestrator.models.intent import AgentContextUpdate, AgentRequest

console = Console()

EXIT_COMMANDS = {"exit", "quit", ":q"}


async def run_repl(agent: ConversationalAgent, user_id: str) -> None:
    """Run the interactive conversational REPL.

    Args:
        agent: The agent that owns this conversation's context.
        user_id: Identifier sent with every request.
    """
    conversation_id = str(uuid4())
    agent.update_context(AgentContextUpdate(conversation_id=conversation_id))
    console.print(f"[dim]Conversation: {conversation_id}[/dim]")

    console.print()
    console.print("[bold]DriveChat[/bold] — Interactive Mode")
    console.print("Ask about your Google Drive. Ctrl+D to exit.")
    console.print()

    while True:
        try:
            user_input = console.input("[bold green]> [/bold green]")
        except EOFError:
            # Ctrl+D
            break

        if not user_input.strip():
            continue
        if user_input.strip().lower() in EXIT_COMMANDS:
            break

        try:
            response = await agent.process_request(
                AgentRequest(user_id=user_id, message=user_input)
            )
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted[/yellow]")
            continue

        console.print(format_agent_response(response), end="", soft_wrap=True, markup=False)

    console.print("\n[dim]Session ended.[/dim]")
