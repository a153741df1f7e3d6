"""
CLI tool for the presence relay service.

Provides commands for inspecting the WebSocket event handler registry,
running the server and connecting as a chat user from the terminal.
"""

import asyncio

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from presence_relay.api.ws.constants import ClientEventType
from presence_relay.client.chat_client import ChatClient
from presence_relay.client.mirror import ClientSessionMirror
from presence_relay.routing import event_router

typer_app = typer.Typer(
    name="presence-relay",
    help="Presence relay CLI - inspect handlers, run the server, chat",
    add_completion=False,
)
console = Console()


def _load_event_handlers() -> None:
    from presence_relay.api.ws.handlers import load_handlers

    load_handlers()


@typer_app.command(name="ws-events")
def ws_events():
    """
    Display a table of all client events and their handlers.

    Example:
        presence-relay ws-events
    """
    _load_event_handlers()

    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]Registered WebSocket Event Handlers[/bold cyan]",
            border_style="cyan",
        )
    )
    console.print()

    table = Table(
        "Event",
        "Handler Path",
        title="WebSocket Event Registry",
        show_lines=True,
    )

    for event_type in ClientEventType:
        handler = event_router.handlers_registry.get(event_type)
        if not handler:
            table.add_row(
                f"[dim]{event_type.value}[/dim]",
                "[red]No handler registered[/red]",
            )
            continue

        table.add_row(
            f"[green]{event_type.value}[/green]",
            f"{handler.__module__}.[yellow]{handler.__name__}[/yellow]",
        )

    console.print(table)
    console.print()

    missing = event_router.missing_handlers()
    total = len(ClientEventType)
    console.print(
        f"[bold]Summary:[/bold] {total - len(missing)}/{total} handlers registered"
    )
    console.print()

    if missing:
        raise typer.Exit(code=1)


@typer_app.command(name="serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind address"),
    port: int = typer.Option(8000, help="Bind port"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
):
    """
    Run the HTTP + WebSocket server with uvicorn.

    Example:
        presence-relay serve --port 5000
    """
    import uvicorn

    uvicorn.run(
        "presence_relay:application",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


def _render_state(mirror: ClientSessionMirror) -> None:
    table = Table("User", "Status", "Activity", title="Presence")
    users = sorted(mirror.online_users | set(mirror.activities))
    for user_id in users:
        table.add_row(
            user_id,
            "[green]online[/green]"
            if mirror.is_online(user_id)
            else "[dim]offline[/dim]",
            mirror.activities.get(user_id, ""),
        )
    console.print(table)

    if mirror.selected_peer is not None:
        console.print(
            f"[bold]Conversation with {mirror.selected_peer}[/bold] "
            f"({len(mirror.messages)} messages)"
        )
        for message in mirror.messages:
            console.print(
                f"  [cyan]{message.created_at:%H:%M:%S}[/cyan] "
                f"[yellow]{message.sender_id}[/yellow]: {message.content}"
            )

    if mirror.last_error:
        console.print(f"[red]Last error:[/red] {mirror.last_error}")


async def _chat(
    user_id: str,
    url: str,
    peer: str | None,
    message: str | None,
    activity: str | None,
    wait: float,
) -> ClientSessionMirror:
    async with ChatClient(user_id, url) as client:
        if peer is not None:
            await client.select_conversation(peer)
        if activity is not None:
            if not await client.update_activity(activity):
                console.print(
                    f"[yellow]![/yellow] Activity not sent: {activity!r}"
                )
        if peer is not None and message is not None:
            if not await client.send_message(peer, message):
                console.print(
                    f"[yellow]![/yellow] Message not sent: {message!r}"
                )
        await asyncio.sleep(wait)
        return client.mirror


@typer_app.command(name="chat")
def chat(
    user_id: str = typer.Argument(..., help="User id to connect as"),
    url: str = typer.Option("ws://localhost:8000/ws", help="WebSocket URL"),
    peer: str = typer.Option(None, "--peer", "-p", help="Conversation peer"),
    message: str = typer.Option(
        None, "--message", "-m", help="Message to send to --peer"
    ),
    activity: str = typer.Option(
        None, "--activity", "-a", help="Activity label to publish"
    ),
    wait: float = typer.Option(
        2.0, help="Seconds to stay connected collecting events"
    ),
):
    """
    Connect as a user, optionally send a message, and print the mirrored state.

    Examples:
        presence-relay chat alice
        presence-relay chat alice -p bob -m "hi" -a "Listening to music"
    """
    if message is not None and peer is None:
        console.print("[red]✗[/red] --message requires --peer")
        raise typer.Exit(code=1)

    try:
        mirror = asyncio.run(_chat(user_id, url, peer, message, activity, wait))
    except OSError as e:
        console.print(
            Panel.fit(
                f"[red]Could not connect[/red]\n\n{e}",
                border_style="red",
                title="Error",
            )
        )
        raise typer.Exit(code=1)

    console.print()
    _render_state(mirror)
    console.print()


if __name__ == "__main__":
    typer_app()
