"""Command-line interface for the LMS email service.

Usage:
    lms-email --config config.ini serve --port 8080
    lms-email --config config.ini send --to student@iu.edu --subject "Hi" --body "Hello"
    lms-email --config config.ini send --to a@iu.edu --to b@iu.edu --subject S \\
        --body-file notice.html --html --attach report.pdf=https://files.example.edu/r.pdf
    lms-email show-config
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Optional, Tuple

import click
from rich.console import Console

from .config import EmailServiceConfig, load_settings
from .core import EmailService, LmsEmailTooBigException, UnsignedRecipientError
from .models import EmailDetails, EmailServiceAttachment, Priority, SendingMethod

console = Console()
err_console = Console(stderr=True)


def run_async(coro):
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    err_console.print(f"[red]Error:[/red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def print_json(data: Any) -> None:
    """Print data as formatted JSON."""
    console.print_json(json.dumps(data, indent=2, default=str))


def configure_logging() -> None:
    log_level = os.getenv("LMS_EMAIL_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )


def parse_attachment(value: str) -> EmailServiceAttachment:
    """Parse ``FILENAME=URL`` into an attachment reference."""
    filename, sep, url = value.partition("=")
    if not sep or not filename.strip() or not url.strip():
        raise click.BadParameter(f"expected FILENAME=URL, got {value!r}", param_hint="--attach")
    return EmailServiceAttachment(filename=filename.strip(), url=url.strip())


async def _send(service: EmailService, details: EmailDetails, sign: bool,
                unsigned_to: Optional[str], method: SendingMethod) -> None:
    try:
        await service.send_email(details, sign, unsigned_to, method)
    finally:
        await service.close()


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to config.ini (default: $LMS_EMAIL_CONFIG or ./config.ini).",
)
@click.pass_context
def main(ctx: click.Context, config_path: Optional[str]) -> None:
    """LMS email service - signed delivery with SMTP fallback."""
    configure_logging()
    ctx.obj = load_settings(config_path)


@main.command("send")
@click.option("--to", "recipients", multiple=True, required=True, help="Recipient address (repeatable).")
@click.option("--subject", default="", help="Subject line.")
@click.option("--body", default=None, help="Message body.")
@click.option("--body-file", type=click.File("r"), default=None, help="Read the body from a file.")
@click.option("--html", "enable_html", is_flag=True, help="Send the body as HTML.")
@click.option("--priority", type=click.Choice([p.value for p in Priority], case_sensitive=False), default=None)
@click.option("--from", "sender", default=None, help="Sender address (default from config).")
@click.option("--attach", "attachments", multiple=True, help="Attachment as FILENAME=URL (repeatable).")
@click.option("--sign/--no-sign", default=False, help="Digitally sign through the signing service.")
@click.option("--secondary", is_flag=True, help="Skip the signing service and send over SMTP.")
@click.option("--unsigned-to", default=None, help="Pre-production redirect address for unsigned mail.")
@click.pass_obj
def send_command(
    config: EmailServiceConfig,
    recipients: Tuple[str, ...],
    subject: str,
    body: Optional[str],
    body_file,
    enable_html: bool,
    priority: Optional[str],
    sender: Optional[str],
    attachments: Tuple[str, ...],
    sign: bool,
    secondary: bool,
    unsigned_to: Optional[str],
) -> None:
    """Send one email through the delivery workflow."""
    if body_file is not None:
        body = body_file.read()
    details = EmailDetails(
        subject=subject,
        body=body or "",
        recipients=list(recipients),
        attachments=[parse_attachment(value) for value in attachments],
        enable_html=enable_html,
        priority=Priority(priority.upper()) if priority else None,
        from_=sender,
    )
    method = SendingMethod.SECONDARY if secondary else SendingMethod.PRIMARY
    service = EmailService(config)
    try:
        run_async(_send(service, details, sign, unsigned_to, method))
    except LmsEmailTooBigException as exc:
        print_error(str(exc))
        raise SystemExit(1)
    except UnsignedRecipientError as exc:
        print_error(str(exc))
        raise SystemExit(1)
    print_success(f"Email sent to {', '.join(recipients)}")


@main.command("show-config")
@click.pass_obj
def show_config(config: EmailServiceConfig) -> None:
    """Print the effective configuration with secrets masked."""
    print_json(config.as_dict())


@main.command("serve")
@click.option("--host", default=None, help="Bind address (default from config).")
@click.option("--port", type=int, default=None, help="Bind port (default from config).")
@click.pass_obj
def serve(config: EmailServiceConfig, host: Optional[str], port: Optional[int]) -> None:
    """Serve the REST API with uvicorn."""
    import uvicorn

    from .api import create_app

    service = EmailService(config)

    @asynccontextmanager
    async def lifespan(_app):
        yield
        await service.close()

    app = create_app(service, lifespan=lifespan)
    uvicorn.run(app, host=host or config.http_host, port=port or config.http_port)


if __name__ == "__main__":
    main()
