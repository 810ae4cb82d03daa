"""zalopy CLI - Main commands."""
import asyncio
import base64
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

app = typer.Typer(
    name="zalopy",
    help="Zalo web protocol client",
    add_completion=False
)
console = Console()


# Database path: ~/.config/zalopy/zalopy.db
def get_db_path() -> Path:
    config_dir = Path.home() / ".config" / "zalopy"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir / "zalopy.db"


def run_async(coro):
    """Run async function."""
    return asyncio.run(coro)


def open_client(db: Optional[Path]):
    from zalopy import ZaloClient
    from zalopy.core.session import SQLiteCredentialStore, SQLiteSessionStore

    path = db or get_db_path()
    return ZaloClient(
        session_store=SQLiteSessionStore(path),
        credential_store=SQLiteCredentialStore(path),
    )


async def load_credential(client, account_id: str):
    credential = await client.get_credential(account_id)
    if credential is None:
        console.print(f"[red]Unknown account {account_id}. Run 'zalopy login' first.[/red]")
        raise typer.Exit(1)
    if not credential.is_active():
        console.print(
            f"[red]Account {account_id} is {credential.status.value}. Log in again.[/red]"
        )
        raise typer.Exit(1)
    return credential


@app.command()
def login(
    qr_file: Path = typer.Option(Path("zalo-qr.png"), "--qr-file", "-q", help="Where to write the QR image"),
    timeout: float = typer.Option(None, "--timeout", "-t", help="Seconds to wait for each phone step"),
    db: Path = typer.Option(None, "--db", help="Database file"),
):
    """Log in by scanning a QR code with the phone app."""
    from zalopy.core.auth import LoginEvent

    async def do_login():
        async with open_client(db) as client:
            def on_state(event: LoginEvent):
                console.print(f"[dim]{event.state.value}[/dim] {event.message}")

            client.login_flow.on_state(on_state)

            started = await client.start_login()
            if not started.success:
                console.print(f"[red]Login failed: {started.message}[/red]")
                raise typer.Exit(1)

            qr_file.write_bytes(base64.b64decode(started.data['qr_image']))
            console.print(f"[green]QR code written to {qr_file}[/green]")
            console.print(f"Code: [bold]{started.data.get('code', '')}[/bold]")
            console.print("Scan it with the Zalo app and confirm on the phone.")

            result = await client.poll_login(started.qr_session_id, timeout=timeout)
            while not result.state.is_terminal:
                result = await client.poll_login(started.qr_session_id, timeout=timeout)

            if not result.success:
                console.print(f"[red]Login failed ({result.state.value}): {result.message}[/red]")
                raise typer.Exit(1)

            credential = result.credential
            console.print(f"[green]Logged in as {credential.display_name}[/green]")
            console.print(f"Account ID: {credential.account_id}")

    run_async(do_login())


@app.command()
def accounts(
    db: Path = typer.Option(None, "--db", help="Database file"),
):
    """List stored accounts."""

    async def do_list():
        async with open_client(db) as client:
            credentials = await client.list_credentials()

        if not credentials:
            console.print("[yellow]No accounts. Run 'zalopy login' first.[/yellow]")
            return

        table = Table()
        table.add_column("Account ID", style="cyan")
        table.add_column("Name")
        table.add_column("Phone")
        table.add_column("Status")
        table.add_column("Last activity", style="dim")

        for credential in credentials:
            status = credential.status.value
            style = "green" if credential.is_active() else "red"
            last = credential.last_activity_at.strftime("%Y-%m-%d %H:%M") if credential.last_activity_at else "-"
            table.add_row(
                credential.account_id,
                credential.display_name,
                credential.phone_number,
                f"[{style}]{status}[/{style}]",
                last,
            )

        console.print(table)

    run_async(do_list())


@app.command()
def send(
    account_id: str = typer.Argument(..., help="Sending account ID"),
    target: str = typer.Argument(..., help="Recipient user ID or group ID"),
    text: str = typer.Option("", "--text", "-m", help="Message text or caption"),
    files: Optional[List[Path]] = typer.Option(None, "--file", "-f", help="Attachment (repeatable)", exists=True),
    group: bool = typer.Option(False, "--group", "-g", help="Target is a group"),
    mention: str = typer.Option(None, "--mention", help="User ID to mention (-1 for everyone)"),
    db: Path = typer.Option(None, "--db", help="Database file"),
):
    """Send a text message or files."""
    from zalopy.core.messaging import Mention, OutboundAttachment, OutboundSendRequest
    from zalopy.core.upload import UploadProgress

    if not text and not files:
        console.print("[red]Nothing to send: pass --text or --file[/red]")
        raise typer.Exit(1)

    async def do_send():
        async with open_client(db) as client:
            credential = await load_credential(client, account_id)
            request = OutboundSendRequest(
                target_id=target,
                is_group=group,
                text=text,
                attachments=[OutboundAttachment.from_path(path) for path in files or []],
                mention=Mention(mention) if mention else None,
            )

            if request.has_attachments:
                with Progress(
                    SpinnerColumn(),
                    TextColumn("[progress.description]{task.description}"),
                    BarColumn(),
                    TaskProgressColumn(),
                    console=console
                ) as progress:
                    task = progress.add_task("Uploading", total=100)

                    def on_progress(p: UploadProgress):
                        progress.update(task, description=f"Uploading {p.filename}", completed=p.percentage)

                    client.messages.set_progress_callback(on_progress)
                    result = await client.send(credential, request)
            else:
                result = await client.send(credential, request)

        if not result.success:
            console.print(f"[red]Send failed ({result.error_kind}): {result.error}[/red]")
            raise typer.Exit(1)

        console.print(f"[green]Sent[/green] message id: {result.platform_message_id or '-'}")

    run_async(do_send())


@app.command()
def listen(
    account_id: str = typer.Argument(..., help="Account ID"),
    db: Path = typer.Option(None, "--db", help="Database file"),
):
    """Print real-time events until interrupted."""
    from zalopy.core.account import ConnectionStatus
    from zalopy.core.realtime import ConnectionEvent, InboundEventEnvelope, StatusEvent

    async def do_listen():
        async with open_client(db) as client:
            credential = await load_credential(client, account_id)
            stopped = asyncio.Event()

            def on_event(event: InboundEventEnvelope):
                where = f"group {event.conversation_id}" if event.is_group else event.conversation_id
                content = event.payload.get('content', event.payload.get('action', ''))
                console.print(f"[cyan]{event.kind.value}[/cyan] {where} from {event.sender_id}: {content}")

            def on_status(status: StatusEvent):
                console.print(f"[dim]{status.status.value} {status.detail or ''}[/dim]")
                if status.status == ConnectionEvent.STOPPED:
                    stopped.set()

            await client.start_listening(credential, on_event, on_status)
            console.print(f"[green]Listening for {account_id}. Press Ctrl+C to stop.[/green]")
            try:
                await stopped.wait()
            finally:
                if credential.status == ConnectionStatus.AUTH_ERROR:
                    await client.credentials.save(credential)
                    console.print("[red]Session rejected, log in again.[/red]")

    try:
        run_async(do_listen())
    except KeyboardInterrupt:
        console.print("[yellow]Stopped[/yellow]")


@app.command()
def disable(
    account_id: str = typer.Argument(..., help="Account ID"),
    db: Path = typer.Option(None, "--db", help="Database file"),
):
    """Disable a stored account."""

    async def do_disable():
        async with open_client(db) as client:
            credential = await client.get_credential(account_id)
            if credential is None:
                console.print(f"[red]Unknown account {account_id}[/red]")
                raise typer.Exit(1)
            await client.disable_account(credential)
        console.print(f"[green]Account {account_id} disabled[/green]")

    run_async(do_disable())


def main():
    """Entry point."""
    app()


if __name__ == "__main__":
    main()
