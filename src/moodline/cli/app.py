"""Main CLI application using Typer."""
import asyncio

import typer
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..chat import CompanionChat
from ..config import MOOD_ENTRY_MAX_INTENSITY, MOOD_ENTRY_MIN_INTENSITY
from ..storage import MoodEntry
from ..trends import summarize_moods
from .providers import configure_logging, get_store, get_transport

# Load environment variables
load_dotenv()

app = typer.Typer(
    name="moodline",
    help="Mental health companion chat with mood tracking",
    no_args_is_help=True,
    add_completion=True,
)

console = Console()


@app.callback()
def _setup() -> None:
    configure_logging()


def _show_error(title: str, message: str) -> None:
    console.print(f"\n[red]{title}:[/red] {message}")


@app.command()
def chat(
    session: str | None = typer.Option(
        None,
        "--session",
        "-s",
        help="Resume an existing session instead of starting a new one"
    ),
    check_in: bool = typer.Option(
        False,
        "--check-in",
        help="Log how you feel before the conversation starts"
    )
):
    """Talk with the companion. Type 'exit' to leave."""
    async def _chat():
        store = get_store()
        transport = get_transport(console)
        companion: CompanionChat | None = None

        try:
            await store.connect()
            companion = await CompanionChat.open(
                store, transport, session_id=session, on_error=_show_error
            )

            for message in companion.messages:
                speaker = "[bold yellow]You:[/bold yellow]" if message.is_user else "[bold cyan]Companion:[/bold cyan]"
                console.print(f"{speaker} {message.content}\n")

            if check_in:
                await _check_in(companion)

            while True:
                try:
                    user_input = console.input("[bold yellow]You:[/bold yellow] ")
                except (KeyboardInterrupt, EOFError):
                    console.print("\n[dim]Take care![/dim]")
                    break

                if not user_input.strip():
                    continue
                if user_input.strip().lower() in ("exit", "quit", "q"):
                    console.print("[dim]Take care![/dim]")
                    break

                console.print("[bold cyan]Companion:[/bold cyan] ", end="")
                outcome = await companion.send(
                    user_input,
                    on_delta=lambda text: console.print(text, end="", markup=False, highlight=False),
                )
                if outcome.failed:
                    console.print(companion.messages[-1].content, markup=False)
                console.print("\n")

        except KeyError as e:
            console.print(f"[red]Error: session {e} not found[/red]")
            raise typer.Exit(code=1)
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            if companion is not None:
                # Queued replies, titles and moods must land before the store closes
                await companion.close()
            await transport.close()
            await store.disconnect()

    asyncio.run(_chat())


async def _check_in(companion: CompanionChat) -> None:
    mood = console.input("[bold]How are you feeling?[/bold] (e.g. happy, sad, anxious) ").strip()
    if not mood:
        return
    raw_intensity = console.input(
        f"[bold]Intensity[/bold] ({MOOD_ENTRY_MIN_INTENSITY}-{MOOD_ENTRY_MAX_INTENSITY}): "
    ).strip()
    note = console.input("[bold]Any notes?[/bold] (optional) ")
    try:
        entry = await companion.log_mood(mood, int(raw_intensity), note)
    except (ValueError, ValidationError) as e:
        console.print(f"[yellow]Mood not logged: {e}[/yellow]\n")
        return
    console.print(f"[green]Mood logged:[/green] {entry.mood} ({entry.intensity}/10)\n")


@app.command()
def sessions():
    """List chat sessions, most recent first."""
    async def _sessions():
        store = get_store()
        try:
            await store.connect()
            items = await store.list_sessions()

            if not items:
                console.print("[yellow]No chats yet[/yellow]")
                return

            table = Table(show_header=True, header_style="bold cyan")
            table.add_column("ID", style="dim")
            table.add_column("Title", style="cyan")
            table.add_column("Updated", style="green")
            for item in items:
                table.add_row(item.id, item.title, item.updated_at.strftime("%Y-%m-%d %H:%M"))
            console.print(table)

        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            await store.disconnect()

    asyncio.run(_sessions())


@app.command()
def history(session: str = typer.Argument(..., help="Session ID")):
    """Show the messages of a session."""
    async def _history():
        store = get_store()
        try:
            await store.connect()
            found = await store.get_session(session)
            if found is None:
                console.print(f"[red]Error: session {session} not found[/red]")
                raise typer.Exit(code=1)

            console.print(Panel(found.title, border_style="cyan"))
            for message in await store.get_messages(session):
                speaker = "[bold yellow]You[/bold yellow]" if message.is_user else "[bold cyan]Companion[/bold cyan]"
                console.print(f"{speaker} [dim]{message.created_at:%H:%M}[/dim]")
                console.print(message.content, markup=False)
                console.print()

        except typer.Exit:
            raise
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            await store.disconnect()

    asyncio.run(_history())


@app.command()
def search(
    query: str = typer.Argument(..., help="Text to look for"),
    limit: int = typer.Option(
        20,
        "--limit",
        "-l",
        help="Maximum number of results"
    )
):
    """Search chats by title and message text."""
    async def _search():
        store = get_store()
        try:
            await store.connect()
            found_sessions = await store.search_sessions(query)
            results = await store.search_messages(query, limit=limit)

            if not found_sessions:
                console.print("[yellow]No chats found[/yellow]")
                return

            chats = Table(show_header=True, header_style="bold cyan", title="Chats")
            chats.add_column("ID", style="dim")
            chats.add_column("Title", style="cyan")
            chats.add_column("Updated", style="green")
            for item in found_sessions:
                chats.add_row(item.id, item.title, item.updated_at.strftime("%Y-%m-%d %H:%M"))
            console.print(chats)

            if not results:
                return

            table = Table(show_header=True, header_style="bold cyan", title="Messages")
            table.add_column("Session", style="dim")
            table.add_column("From", width=9)
            table.add_column("Message")
            for message in results:
                preview = message.content if len(message.content) <= 120 else message.content[:120] + "..."
                table.add_row(message.session_id, "You" if message.is_user else "Companion", preview)
            console.print(table)

        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            await store.disconnect()

    asyncio.run(_search())


@app.command("delete-session")
def delete_session(
    session: str = typer.Argument(..., help="Session ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation")
):
    """Delete a session and its messages."""
    async def _delete():
        store = get_store()
        try:
            await store.connect()
            if await store.delete_session(session):
                console.print("[green]Chat deleted[/green]")
            else:
                console.print(f"[yellow]No session {session}[/yellow]")
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            await store.disconnect()

    if not yes and not typer.confirm(f"Delete session {session}?"):
        console.print("[dim]Aborted.[/dim]")
        return
    asyncio.run(_delete())


@app.command("log-mood")
def log_mood(
    mood: str = typer.Argument(..., help="Mood name, e.g. happy"),
    intensity: int = typer.Argument(..., help="Intensity from 1 to 10"),
    note: str | None = typer.Option(None, "--note", "-n", help="Optional note"),
    session: str | None = typer.Option(None, "--session", "-s", help="Attach to a session")
):
    """Log a mood check-in."""
    async def _log():
        store = get_store()
        try:
            entry = MoodEntry(session_id=session, mood=mood, intensity=intensity, note=note)
        except ValidationError as e:
            console.print(f"[red]Validation Error: {e.errors()[0]['msg']}[/red]")
            raise typer.Exit(code=1)

        try:
            await store.connect()
            await store.log_mood(entry)
            console.print("[green]Mood logged.[/green] Thanks for sharing how you're feeling.")
        except Exception as e:
            console.print(f"[red]Error saving mood: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            await store.disconnect()

    asyncio.run(_log())


@app.command()
def moods(session: str | None = typer.Option(None, "--session", "-s", help="Only this session")):
    """Show mood trends."""
    async def _moods():
        store = get_store()
        try:
            await store.connect()
            trends = summarize_moods(await store.list_mood_entries(session))

            if not trends.total:
                console.print("[yellow]No mood data yet.[/yellow] Log your mood to see trends.")
                return

            summary = Table(show_header=False, box=None)
            summary.add_column("Metric", style="bold cyan", width=20)
            summary.add_column("Value")
            summary.add_row("Entries", str(trends.total))
            summary.add_row("Average Intensity", f"{trends.average_intensity:.1f}")
            summary.add_row("Most Common Mood", trends.most_common_mood or "-")
            summary.add_row("Moods", ", ".join(f"{k}: {v}" for k, v in trends.counts.items()))
            console.print(summary)

            chart = Table(show_header=True, header_style="bold cyan")
            chart.add_column("Date", width=8)
            chart.add_column("Mood", style="yellow")
            chart.add_column("Intensity")
            for point in trends.points:
                chart.add_row(point.label, point.mood, f"{'#' * point.intensity} {point.intensity}")
            console.print(chart)

        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            await store.disconnect()

    asyncio.run(_moods())


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
