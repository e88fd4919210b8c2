"""CLI entry point for the LaNotifica relay."""

from pathlib import Path

import click

from lanotifica import __version__
from lanotifica.logging import setup_logging
from lanotifica.paths import AppPaths


@click.group()
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Use this directory instead of $XDG_CONFIG_HOME/lanotifica.",
)
@click.option("--log-level", default="INFO", show_default=True, help="Log level.")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Also write logs to this file.",
)
@click.pass_context
def main(ctx: click.Context, config_dir: Path | None, log_level: str, log_file: str | None) -> None:
    """LaNotifica - Forward Android notifications to your desktop."""
    ctx.ensure_object(dict)
    paths = AppPaths.from_environment()
    if config_dir is not None:
        paths = AppPaths(config_dir=config_dir, cache_dir=paths.cache_dir)
    ctx.obj["paths"] = paths
    ctx.obj["logger"] = setup_logging(log_level, log_file)


@main.command()
@click.pass_context
def serve(ctx: click.Context) -> None:
    """Run the relay until interrupted."""
    import asyncio
    import signal

    from lanotifica.daemon import Relay, StartupError
    from lanotifica.netutil import parse_port

    relay = Relay(ctx.obj["paths"])

    async def _serve():
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, relay.request_stop)

        try:
            await relay.start()
            port = parse_port(relay.config.port)
            click.echo(f"Open https://localhost:{port} in your browser to see the QR code")
            await relay.run_forever()
        except StartupError as e:
            click.echo(f"Startup error: {e}", err=True)
            raise SystemExit(1)
        finally:
            await relay.stop()

    asyncio.run(_serve())


def _load_identity(paths: AppPaths):
    """Load config and identity for the offline commands, exiting on failure."""
    from lanotifica.cert import load_or_create_identity
    from lanotifica.config import load_config
    from lanotifica.errors import LanotificaError

    try:
        config = load_config(paths)
        identity = load_or_create_identity(paths.config_dir)
    except LanotificaError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)
    return config, identity


@main.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False),
    default=None,
    help="Save QR code as PNG instead of printing it.",
)
@click.pass_context
def pair(ctx: click.Context, output: str | None) -> None:
    """Show the pairing QR code."""
    from lanotifica.pairing import PairingQr

    config, identity = _load_identity(ctx.obj["paths"])
    qr = PairingQr(config.secret, identity.fingerprint)

    if output:
        png = qr.to_png_bytes()
        if not png:
            click.echo("Error: failed to generate QR code", err=True)
            raise SystemExit(1)
        Path(output).write_bytes(png)
        click.echo(f"QR code saved to: {output}")
    else:
        click.echo(qr.to_terminal())
        click.echo("Scan this QR code with the LaNotifica app")

    click.echo(f"Certificate fingerprint: {identity.fingerprint}")


@main.command()
@click.pass_context
def fingerprint(ctx: click.Context) -> None:
    """Print the certificate fingerprint."""
    _, identity = _load_identity(ctx.obj["paths"])
    click.echo(identity.fingerprint)


@main.command()
@click.pass_context
def paths(ctx: click.Context) -> None:
    """Print the config, certificate and key locations."""
    app_paths: AppPaths = ctx.obj["paths"]
    click.echo(f"config: {app_paths.config_file}")
    click.echo(f"cert:   {app_paths.cert_file}")
    click.echo(f"key:    {app_paths.key_file}")
    click.echo(f"icons:  {app_paths.icon_dir}")


@main.command()
def version() -> None:
    """Show version."""
    click.echo(f"lanotifica version {__version__}")
