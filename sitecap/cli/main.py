#!/usr/bin/env python3
"""Main CLI entry point for sitecap using Typer.

``sitecap capture`` renders one URL (or HTML read from stdin) and writes
the screenshot, the HTML or a JSON report. ``sitecap serve`` starts the
HTTP API.
"""

import asyncio
import json
import logging
import sys
from enum import IntEnum
from pathlib import Path
from typing import Annotated, Optional

import typer

from .. import __version__
from ..capture.engine import execute_capture
from ..config import SitecapSettings, load_settings
from ..errors import ConfigurationError, SitecapError
from ..logging_config import configure_logging
from ..models.capture import BrowserResponse, CaptureRequest
from ..utils.params import build_capture_request

logger = logging.getLogger(__name__)

STDIN_MARKER = "-"


class ExitCode(IntEnum):
    """CLI exit codes."""
    SUCCESS = 0
    CAPTURE_ERROR = 1
    CONFIG_ERROR = 2


app = typer.Typer(
    name="sitecap",
    help="Capture screenshots, HTML and request traces of web pages",
    add_completion=False,
)


def _load_settings(config: Optional[Path]) -> SitecapSettings:
    try:
        return load_settings(config)
    except ConfigurationError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)


def _read_stdin_html() -> str:
    html = sys.stdin.read()
    if not html:
        typer.echo("No HTML content provided via stdin", err=True)
        raise typer.Exit(code=ExitCode.CAPTURE_ERROR.value)
    return html


def _write_output(data: bytes, output: Optional[Path]) -> None:
    if output is None:
        typer.echo(data, nl=False)
        return
    output.write_bytes(data)
    logger.info(f"Wrote {len(data)} bytes to {output}")


def _render(response: BrowserResponse, json_mode: bool, html_mode: bool) -> bytes:
    if json_mode:
        return json.dumps(response.to_json_output(), indent=2).encode("utf-8")
    if html_mode:
        return (response.html or "").encode("utf-8")
    return response.screenshot or b""


@app.callback()
def main():
    """
    sitecap - render web pages in a headless browser and capture the result.
    """
    pass


@app.command(name="version")
def show_version():
    """Show version information."""
    typer.echo(f"sitecap v{__version__}")


@app.command()
def capture(
    target: Annotated[
        str,
        typer.Argument(help="URL to capture, or '-' to read HTML from stdin")
    ],

    viewport: Annotated[
        Optional[str],
        typer.Option("--viewport", help="Viewport dimensions (e.g. 1920x1080)")
    ] = None,

    resize: Annotated[
        Optional[str],
        typer.Option("--resize", help="Resize parameters (e.g. 100x200, 100x200!, 100x200#)")
    ] = None,

    full_height: Annotated[
        Optional[bool],
        typer.Option("--full-height/--no-full-height", help="Capture up to 10x the viewport height")
    ] = None,

    timeout: Annotated[
        Optional[int],
        typer.Option("--timeout", help="Timeout in seconds (0 = no timeout)")
    ] = None,

    wait: Annotated[
        Optional[int],
        typer.Option("--wait", help="Seconds to wait after load before capturing")
    ] = None,

    domains: Annotated[
        Optional[str],
        typer.Option("--domains", help="Comma-separated allowed domains (e.g. example.com,*.cdn.com)")
    ] = None,

    headers: Annotated[
        Optional[str],
        typer.Option("--headers", help="JSON object of extra request headers")
    ] = None,

    cookies: Annotated[
        Optional[str],
        typer.Option("--cookies", help="JSON list of cookies to set before loading")
    ] = None,

    html_mode: Annotated[
        bool,
        typer.Option("--html", help="Output HTML content instead of a screenshot")
    ] = False,

    json_mode: Annotated[
        bool,
        typer.Option("--json", help="Output JSON with screenshot, HTML, cookies, network and logs")
    ] = False,

    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Write to this file instead of stdout")
    ] = None,

    debug: Annotated[
        bool,
        typer.Option("--debug", help="Log interception decisions and responses")
    ] = False,

    config: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to a sitecap.yaml settings file")
    ] = None,
):
    """
    Capture a single page.

    Writes PNG bytes (or the resized format) to stdout by default.
    """
    settings = _load_settings(config)
    configure_logging(debug=debug or settings.debug, level=logging.WARNING)
    defaults = settings.defaults

    url: Optional[str] = target
    html: Optional[str] = None
    if target == STDIN_MARKER:
        url, html = None, _read_stdin_html()

    try:
        request: CaptureRequest = build_capture_request(
            url=url,
            html=html,
            viewport=viewport if viewport is not None else defaults.viewport,
            resize=None if html_mode else (resize if resize is not None else defaults.resize),
            timeout=timeout if timeout is not None else defaults.timeout,
            wait=wait if wait is not None else defaults.wait,
            domains=domains if domains is not None else defaults.domains,
            headers=headers if headers is not None else defaults.headers,
            cookies=cookies,
            full_height=full_height if full_height is not None else defaults.full_height,
            capture_screenshot=not html_mode or json_mode,
            capture_html=html_mode or json_mode,
            capture_cookies=json_mode,
            capture_network=json_mode,
            capture_logs=json_mode,
        )
    except ConfigurationError as e:
        typer.echo(f"Error parsing parameters: {e}", err=True)
        raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)

    try:
        response = asyncio.run(
            execute_capture(request, settings.get_engine_config(debug=debug or None))
        )
    except KeyboardInterrupt:
        typer.echo("Operation interrupted by user", err=True)
        raise typer.Exit(code=ExitCode.CAPTURE_ERROR.value)
    except SitecapError as e:
        typer.echo(f"Error processing request: {e}", err=True)
        raise typer.Exit(code=ExitCode.CAPTURE_ERROR.value)

    try:
        _write_output(_render(response, json_mode, html_mode), output)
    except OSError as e:
        typer.echo(f"Error writing output: {e}", err=True)
        raise typer.Exit(code=ExitCode.CAPTURE_ERROR.value)


@app.command()
def serve(
    listen: Annotated[
        Optional[str],
        typer.Option("--listen", help="Address to bind (default from settings, localhost)")
    ] = None,

    port: Annotated[
        Optional[int],
        typer.Option("--port", help="Port to bind (default from settings, 8080)")
    ] = None,

    debug: Annotated[
        bool,
        typer.Option("--debug", help="Log interception decisions and responses")
    ] = False,

    config: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to a sitecap.yaml settings file")
    ] = None,
):
    """
    Start the HTTP API server.
    """
    from ..api.main import run_server

    settings = _load_settings(config)
    configure_logging(debug=debug or settings.debug)

    host = listen or settings.server.listen
    bind_port = port or settings.server.port
    typer.echo(f"Starting sitecap server on http://{host}:{bind_port}", err=True)
    run_server(settings, host=host, port=bind_port, debug=debug or None)


def cli_main():
    """Entry point for console script."""
    app()


if __name__ == "__main__":
    cli_main()
