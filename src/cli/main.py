"""DriveChat CLI: Drive agent, chat threads and provider settings.

Everything runs in-process against the same services the API uses.

Usage:
    drivechat ask "list my files"      Run one Drive agent turn
    drivechat repl                      Start conversational Drive REPL
    drivechat chat "hello"              Stream one chat reply into a thread
    drivechat threads list              List chat threads
    drivechat providers list            Show chat providers and selection
"""

import asyncio
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

import typer
from rich.console import Console
from sqlalchemy.orm import Session

from src.cli.config import DriveChatConfig, load_config_or_default
from src.cli.output import (
    format_agent_response,
    format_provider_table,
    format_thread_messages,
    format_thread_table,
)
from src.db.connection import get_db_context, init_db
from src.errors.classifier import classify_agent_error, log_agent_error
from src.errors.domain import DomainError, NotFoundError, ValidationError
from src.orchestrator.agent.conversational_agent import ConversationalAgent
from src.orchestrator.agent.executor import DriveOperationExecutor
from src.orchestrator.models.intent import AgentRequest
from src.services.chat_models import CreateThreadRequest
from src.services.chat_persistence_service import ChatPersistenceService
from src.services.chat_providers import ProviderConfig, create_chat_model, get_provider_by_id
from src.services.chat_stream import ChatStreamSession
from src.services.drive_service import GoogleDriveService
from src.services.google_credentials import GoogleOAuthCredentials, GoogleOAuthTokenProvider
from src.services.keyring_store import KeyringStore
from src.services.message_persistence import SQLMessagePersistence
from src.services.provider_settings import ProviderSettingsStore
from src.services.stream_reconciler import StreamReconciler
from src.services.thread_lifecycle import ThreadLifecycleManager
from src.utils.paths import ensure_dirs_exist, get_provider_settings_path

_log = logging.getLogger(__name__)

app = typer.Typer(
    name="drivechat",
    help="Multi-provider chat and a natural-language Google Drive agent",
    no_args_is_help=True,
)
threads_app = typer.Typer(help="Manage chat threads")
providers_app = typer.Typer(help="Configure chat providers")

app.add_typer(threads_app, name="threads")
app.add_typer(providers_app, name="providers")

console = Console()

# --- Global state ---
_config_path: str | None = None


@app.callback()
def main(
    config: Optional[str] = typer.Option(
        None, "--config", help="Path to drivechat.yaml config file"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log to stderr"),
):
    """DriveChat CLI."""
    global _config_path
    _config_path = config
    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s:%(message)s")


# --- Runtime construction (patched in tests) ---


def _load() -> DriveChatConfig:
    try:
        return load_config_or_default(_config_path)
    except FileNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


def _build_drive(cfg: DriveChatConfig) -> GoogleDriveService:
    """Drive client from the config's Google section, else env and keychain."""
    if cfg.google.client_id:
        credentials = GoogleOAuthCredentials(
            client_id=cfg.google.client_id,
            client_secret=cfg.google.client_secret,
            refresh_token=cfg.google.refresh_token or None,
        )
    else:
        credentials = GoogleOAuthCredentials.from_env(KeyringStore())
    return GoogleDriveService(
        GoogleOAuthTokenProvider(credentials),
        timeout_ms=cfg.agent.timeout_ms,
        retry_attempts=cfg.agent.retry_attempts,
    )


def _provider_store() -> ProviderSettingsStore:
    store = ProviderSettingsStore(get_provider_settings_path())
    store.load()
    return store


@contextmanager
def _db_session() -> Iterator[Session]:
    ensure_dirs_exist()
    init_db()
    with get_db_context() as db:
        yield db


def _fail(e: Exception) -> None:
    console.print(f"[red]Error:[/red] {e}")
    raise typer.Exit(1)


# --- Version ---


@app.command()
def version():
    """Show DriveChat version."""
    from importlib.metadata import version as pkg_version
    try:
        v = pkg_version("drivechat")
    except Exception:
        v = "unknown"
    console.print(f"[bold]DriveChat[/bold] v{v}")


# --- Drive agent ---


@app.command()
def ask(
    message: str = typer.Argument(help='Request, e.g. "create a folder called Reports"'),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="User id"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Run one Drive agent turn."""
    cfg = _load()

    async def _run():
        drive = _build_drive(cfg)
        try:
            agent = ConversationalAgent(
                DriveOperationExecutor(drive), config=cfg.agent.to_agent_config()
            )
            return await agent.process_request(
                AgentRequest(user_id=user or cfg.user_id, message=message)
            )
        finally:
            await drive.aclose()

    response = asyncio.run(_run())
    output = format_agent_response(response, as_json=json_output)
    console.print(output, end="", soft_wrap=True, markup=False)
    if response.status == "error":
        raise typer.Exit(1)


@app.command()
def repl(
    user: Optional[str] = typer.Option(None, "--user", "-u", help="User id"),
):
    """Start a conversational Drive REPL."""
    from src.cli.repl import run_repl

    cfg = _load()

    async def _run():
        drive = _build_drive(cfg)
        try:
            agent = ConversationalAgent(
                DriveOperationExecutor(drive), config=cfg.agent.to_agent_config()
            )
            await run_repl(agent, user or cfg.user_id)
        finally:
            await drive.aclose()

    asyncio.run(_run())


# --- Chat ---


def _chat_provider_config(cfg: DriveChatConfig, store: ProviderSettingsStore) -> ProviderConfig:
    """Provider for ``chat``: the config file's chat section wins over saved selection.

    Raises:
        ValidationError: Unknown provider, nothing selected, or no API key.
    """
    if not cfg.chat.provider:
        return store.provider_config()
    provider = get_provider_by_id(cfg.chat.provider)
    if provider is None:
        raise ValidationError(f"Unsupported provider: {cfg.chat.provider}")
    model = cfg.chat.model or (provider.models[0].id if provider.models else "")
    api_key = cfg.chat.api_key or store.get_api_key(cfg.chat.provider)
    if not api_key:
        raise ValidationError(f"Provider {cfg.chat.provider} is not configured")
    return ProviderConfig(provider=cfg.chat.provider, model=model, api_key=api_key)


@app.command()
def chat(
    message: str = typer.Argument(help="Message to send"),
    thread: Optional[str] = typer.Option(
        None, "--thread", "-t", help="Thread id (default: most recent, or a new one)"
    ),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="User id"),
):
    """Stream one chat reply and persist both messages to a thread."""
    cfg = _load()
    store = _provider_store()
    try:
        provider_config = _chat_provider_config(cfg, store)
    except DomainError as e:
        _fail(e)
    user_id = user or cfg.user_id

    async def _run():
        persistence = SQLMessagePersistence(_db_session)
        reconciler = StreamReconciler(
            persistence, user_id, settle_delay=cfg.chat.settle_delay_seconds
        )
        lifecycle = ThreadLifecycleManager(persistence, reconciler, user_id)
        if thread:
            await lifecycle.select_thread(thread)
        else:
            existing = await persistence.list_threads(user_id)
            if existing:
                await lifecycle.select_thread(existing[0])
            else:
                await lifecycle.create_thread()
        current = lifecycle.current_thread
        console.print(f"[dim]Thread: {current.thread_id} ({current.title})[/dim]")

        session = ChatStreamSession(lifecycle, model_factory=create_chat_model)
        async for delta in session.stream_reply(message, provider_config):
            console.print(delta, end="", markup=False, highlight=False)
        console.print()

    try:
        asyncio.run(_run())
    except DomainError as e:
        _fail(e)
    except Exception as e:
        error = classify_agent_error(e, "stream the reply")
        log_agent_error(error, "cli_chat", user_id)
        console.print(f"\n[red]{error.type.value}:[/red] {error.message}")
        raise typer.Exit(1)


# --- Threads ---


@threads_app.command("list")
def threads_list(
    user: Optional[str] = typer.Option(None, "--user", "-u", help="User id"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List chat threads, most recently updated first."""
    cfg = _load()
    with _db_session() as db:
        threads = ChatPersistenceService(db).list_threads(user or cfg.user_id)
    console.print(format_thread_table(threads, as_json=json_output), soft_wrap=True, markup=False)


@threads_app.command("new")
def threads_new(
    title: Optional[str] = typer.Option(None, "--title", help="Title (default: Chat N)"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="User id"),
):
    """Create the next sequential thread."""
    cfg = _load()
    with _db_session() as db:
        created = ChatPersistenceService(db).create_thread(
            CreateThreadRequest(user_id=user or cfg.user_id, title=title)
        )
    console.print(f"[green]Created[/green] {created.thread_id} ({created.title})")


@threads_app.command("show")
def threads_show(
    thread_id: str = typer.Argument(help="Thread ID"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show a thread's messages."""
    with _db_session() as db:
        svc = ChatPersistenceService(db)
        if svc.get_thread(thread_id) is None:
            _fail(NotFoundError("Thread", thread_id))
        messages = svc.list_messages(thread_id)
    console.print(format_thread_messages(messages, as_json=json_output), soft_wrap=True, markup=False)


@threads_app.command("rename")
def threads_rename(
    thread_id: str = typer.Argument(help="Thread ID"),
    title: str = typer.Argument(help="New title"),
):
    """Rename a thread."""
    try:
        with _db_session() as db:
            updated = ChatPersistenceService(db).update_thread_title(thread_id, title)
    except NotFoundError as e:
        _fail(e)
    console.print(f"[green]Renamed[/green] {updated.thread_id} to {updated.title}")


@threads_app.command("delete")
def threads_delete(
    thread_id: str = typer.Argument(help="Thread ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete a thread and its messages."""
    if not yes:
        typer.confirm(f"Delete thread {thread_id}?", abort=True)
    with _db_session() as db:
        deleted = ChatPersistenceService(db).delete_thread(thread_id)
    if not deleted:
        console.print(f"[red]Thread not found:[/red] {thread_id}")
        raise typer.Exit(1)
    console.print(f"[green]Deleted[/green] {thread_id}")


# --- Providers ---


@providers_app.command("list")
def providers_list(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show the provider catalogue, configuration and selection."""
    store = _provider_store()
    console.print(format_provider_table(store.state, as_json=json_output), soft_wrap=True, markup=False)


@providers_app.command("configure")
def providers_configure(
    provider_id: str = typer.Argument(help="openai, anthropic or mistral"),
    api_key: str = typer.Option(
        ..., "--api-key", prompt=True, hide_input=True, help="Provider API key"
    ),
    select: bool = typer.Option(True, "--select/--no-select", help="Also select it"),
):
    """Store a provider API key in the system keychain."""
    store = _provider_store()
    try:
        store.configure_provider(provider_id, api_key)
        if select:
            store.select_provider(provider_id)
    except DomainError as e:
        _fail(e)
    console.print(f"[green]Configured[/green] {provider_id}")


@providers_app.command("select")
def providers_select(
    provider_id: str = typer.Argument(help="Provider to select"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model id"),
):
    """Select the provider (and optionally model) used for chat."""
    store = _provider_store()
    try:
        store.select_provider(provider_id)
        if model:
            store.select_model(model)
    except DomainError as e:
        _fail(e)
    state = store.state
    console.print(f"Selected {state.selected_provider} / {state.selected_model}")


@providers_app.command("remove")
def providers_remove(
    provider_id: str = typer.Argument(help="Provider to remove"),
):
    """Forget a provider's API key."""
    store = _provider_store()
    store.remove_provider(provider_id)
    console.print(f"Removed {provider_id}")


if __name__ == "__main__":
    app()
