"""Command-line interface for sugobot."""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from sugobot.aggregation import TapAggregator
from sugobot.channel import ChannelListener, DomainEvent, SugoChannelError
from sugobot.channel.codec import decode_payload
from sugobot.channel.websocket import SugoWebSocket
from sugobot.config import build_channel, build_connection_config, load_config
from sugobot.coordinator import Coordinator
from sugobot.models import Config
from sugobot.wiretap import WireTap

logger = logging.getLogger(__name__)


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


class ConsoleListener(ChannelListener):
    """Echoes room activity to the terminal."""

    async def on_open(self) -> None:
        click.echo("🔗 Channel open")

    async def on_close(self, code: int, reason: str) -> None:
        click.echo(f"🔌 Channel closed ({code} {reason})")

    async def on_chat(self, event: DomainEvent) -> None:
        click.echo(f"💬 cmd={event.frame.cmd} {json.dumps(event.frame.data, ensure_ascii=False)[:160]}")

    async def on_gift(self, event: DomainEvent) -> None:
        click.echo(f"🎁 cmd={event.frame.cmd} {json.dumps(event.frame.data, ensure_ascii=False)[:160]}")

    async def on_pk(self, event: DomainEvent) -> None:
        click.echo(f"🥊 cmd={event.frame.cmd} {json.dumps(event.frame.data, ensure_ascii=False)[:160]}")


@click.group()
@click.version_option(version="0.1.0")
def cli():
    """sugobot - Room chat bot for SUGO live rooms."""
    pass


async def _run(cfg: Config) -> None:
    tap = WireTap(Path(cfg.tap_dir))
    channel = build_channel(cfg, listeners=[ConsoleListener(), tap])
    coordinator = Coordinator(channel, cfg.pacing)

    await coordinator.start()
    await channel.connect()
    try:
        await asyncio.Event().wait()
    finally:
        await coordinator.stop()
        await channel.disconnect()
        logger.info(
            f"Session ended. Reconnects: {channel.total_reconnects}, "
            f"errors: {channel.total_errors}, tapped records: {tap.record_count}"
        )


@cli.command()
@click.option(
    "--config",
    type=click.Path(path_type=Path),
    default="config.yaml",
    help="Path to config YAML file",
)
@click.option("--log-level", default=None, help="Override the configured log level")
def run(config: Path, log_level: Optional[str]):
    """Connect to the room and run the bot until interrupted."""
    cfg = load_config(config)
    _setup_logging(log_level or cfg.log_level)

    if not cfg.channel.room_id:
        logger.error("No room configured. Set channel.room_id in config.yaml")
        sys.exit(1)

    logger.info(f"Starting sugobot for room {cfg.channel.room_id}")

    try:
        asyncio.run(_run(cfg))
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, bot stopped")


async def _probe(cfg: Config, timeout: float) -> int:
    conn = build_connection_config(cfg)
    click.echo(f"URL: {conn.url}")
    click.echo(f"Protocols: {conn.redacted_protocols() or '(none)'}")

    try:
        ws = await SugoWebSocket.connect(conn.url, conn.headers, conn.protocols)
    except SugoChannelError as e:
        click.echo(f"❌ {e}")
        return 1

    try:
        negotiated = ws.protocol
        click.echo(f"✅ OPEN, negotiated protocol: {negotiated or 'none'}")
        if conn.protocols and not negotiated:
            click.echo("❌ Server rejected subprotocol (token format wrong or stale)")
            return 1

        try:
            payload = await asyncio.wait_for(ws.receive(), timeout=timeout)
        except asyncio.TimeoutError:
            click.echo(f"No frame within {timeout:.1f}s (client-first protocol?)")
            return 0
        except SugoChannelError as e:
            click.echo(f"❌ {e}")
            return 1

        if payload is None:
            click.echo(f"🔌 Closed by server ({ws.close_code} {ws.close_reason})")
            return 1

        text = decode_payload(payload, cfg.channel.decompress)
        click.echo(f"First frame: {text[:500]}")
        return 0
    finally:
        await ws.close(1000, "probe-done")


@cli.command()
@click.option(
    "--config",
    type=click.Path(path_type=Path),
    default="config.yaml",
    help="Path to config YAML file",
)
@click.option("--timeout", type=float, default=3.0, help="Seconds to wait for a first frame")
def probe(config: Path, timeout: float):
    """Open one socket and report the negotiated subprotocol and first frame."""
    cfg = load_config(config)
    _setup_logging(cfg.log_level)
    sys.exit(asyncio.run(_probe(cfg, timeout)))


@cli.command("tap-summary")
@click.option(
    "--tap-dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default="data",
    help="Directory holding the wire-tap JSONL files",
)
def tap_summary(tap_dir: Path):
    """Count tapped frames per file and command code."""
    aggregator = TapAggregator(tap_dir)
    summary = aggregator.summarize()

    if summary.empty:
        click.echo(f"No wire-tap records in {tap_dir}")
        return

    click.echo(summary.to_string(index=False))

    unknown = aggregator.unknown_cmds()
    if unknown:
        click.echo(f"\nUnmapped command codes: {', '.join(unknown)}")


if __name__ == "__main__":
    cli()
