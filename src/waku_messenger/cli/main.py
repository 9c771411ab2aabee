"""
Waku messenger CLI — `waku` command.

Configuration comes from the WAKU_* environment variables.

Commands:
  waku topic [HINT]                 Print the content topic a hint resolves to
  waku send BODY [-t TOPIC] [-r ID] Publish one JSON message
  waku listen [TOPIC]               Print inbound messages until interrupted
"""

import asyncio
import json
import logging
from typing import Optional

try:
    import click
    from rich.console import Console
    from rich.logging import RichHandler
except ImportError:
    raise SystemExit("CLI requires extras: pip install waku-messenger[cli]")

from waku_messenger import __version__
from waku_messenger.client import WakuClient
from waku_messenger.config import WakuConfig
from waku_messenger.errors import WakuError
from waku_messenger.models.envelope import WakuMessageEvent

console = Console(stderr=True)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _run(coro):
    try:
        return asyncio.run(coro)
    except WakuError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)


@click.group()
@click.version_option(__version__)
@click.option("--node-url", default=None, help="REST URL of the Waku node (overrides WAKU_NODE_URL).")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging.")
@click.pass_context
def main(ctx: click.Context, node_url: Optional[str], verbose: bool):
    """Waku messenger CLI — publish and receive JSON events over Waku."""
    _setup_logging(verbose)
    try:
        config = WakuConfig.from_env()
    except WakuError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)
    if node_url:
        config = config.model_copy(update={"node_url": node_url})
    ctx.obj = config


@main.command("topic")
@click.argument("hint", required=False, default="")
@click.pass_obj
def topic_cmd(config: WakuConfig, hint: str):
    """Print the content topic HINT resolves to."""
    try:
        click.echo(WakuClient(config).build_full_topic(hint))
    except WakuError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)


@main.command("send")
@click.argument("body")
@click.option("-t", "--topic", default="", help="Topic hint; the default topic when omitted.")
@click.option("-r", "--room", "room_id", default="", help="Room id stamped on the message.")
@click.pass_obj
def send_cmd(config: WakuConfig, body: str, topic: str, room_id: str):
    """Publish BODY (JSON text) as one message."""
    try:
        value = json.loads(body)
    except ValueError:
        raise click.BadParameter("BODY must be valid JSON", param_hint="BODY")

    async def _send() -> bool:
        client = WakuClient(config)
        try:
            with console.status("Connecting to Waku..."):
                await client.init()
            return await client.send_message(value, topic, room_id)
        finally:
            await client.stop()

    if _run(_send()):
        console.print("[green]Message sent.[/green]")
    else:
        console.print("[red]Message was not sent.[/red]")
        raise SystemExit(1)


@main.command("listen")
@click.argument("topic", required=False, default="")
@click.option("--json-output", "--json", is_flag=True)
@click.pass_obj
def listen_cmd(config: WakuConfig, topic: str, json_output: bool):
    """Print messages received on TOPIC (the default topic when omitted)."""

    def show(event: WakuMessageEvent) -> None:
        if json_output:
            click.echo(json.dumps(event.model_dump()))
        else:
            console.print(f"[dim]{event.timestamp}[/dim] [cyan]{event.room_id}[/cyan] {json.dumps(event.body)}")

    async def _listen() -> None:
        client = WakuClient(config)
        subscribed: Optional[str] = None
        try:
            with console.status("Connecting to Waku..."):
                await client.init()
            subscribed = await client.subscribe(topic, show)
            console.print(f"[cyan]Listening on {subscribed} (Ctrl+C to exit)[/cyan]")
            await asyncio.Event().wait()
        finally:
            if subscribed:
                await client.unsubscribe(subscribed)
            await client.stop()

    try:
        _run(_listen())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
