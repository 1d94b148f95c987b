"""hairlab CLI - typer application entry point."""

from __future__ import annotations

import asyncio
import atexit
import base64
import binascii
import mimetypes
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from hairlab.client import GatewayError, HairlabClient
from hairlab.config import load_settings
from hairlab.errors import ConfigurationError
from hairlab.observability import close_file_logging, configure_logging, get_logger
from hairlab.providers.base import GenerationResult, ImagePayload
from hairlab.providers.registry import DEFAULT_PROVIDER, KNOWN_PROVIDERS, ProviderRegistry

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="hairlab",
    help="hairlab: AI hairstyle suggestions and previews.",
    no_args_is_help=True,
)
console = Console()

DEFAULT_OUTPUT = Path("hairstyle.png")

_verbose = 0

ApiUrlOption = Annotated[
    str | None,
    typer.Option("--api-url", help="Dispatcher URL.", envvar="HAIRLAB_API_URL"),
]
ProviderOption = Annotated[
    str | None,
    typer.Option("--provider", "-p", help="Provider key (default: server default)."),
]
ModelOption = Annotated[
    str | None,
    typer.Option("--model", "-m", help="Model name (default: provider default)."),
]


@app.callback()
def main(
    verbose: Annotated[
        int,
        typer.Option(
            "-v",
            "--verbose",
            count=True,
            help="Increase verbosity: -v for INFO, -vv for DEBUG.",
        ),
    ] = 0,
    log_file: Annotated[
        Path | None,
        typer.Option("--log-file", help="Also write every log event to this JSONL file."),
    ] = None,
) -> None:
    """hairlab: AI hairstyle suggestions and previews."""
    global _verbose
    _verbose = verbose
    configure_logging(verbosity=verbose, log_file=log_file)
    if log_file is not None:
        atexit.register(close_file_logging)


def read_image(path: Path) -> ImagePayload:
    """Load an image file as a base64 payload.

    Raises:
        typer.Exit: If the file is missing or its type cannot be guessed.
    """
    if not path.is_file():
        console.print(f"[red]Error:[/red] Image '{path}' not found")
        raise typer.Exit(1)
    mime_type, _ = mimetypes.guess_type(path.name)
    if not mime_type or not mime_type.startswith("image/"):
        console.print(f"[red]Error:[/red] Cannot tell the image type of '{path}'")
        raise typer.Exit(1)
    data = base64.b64encode(path.read_bytes()).decode("ascii")
    return ImagePayload(base64_data=data, mime_type=mime_type)


def decode_data_url(url: str) -> tuple[str, bytes]:
    """Split ``data:<mime>;base64,<data>`` into its MIME type and bytes.

    Raises:
        ValueError: If ``url`` is not a base64 data URL.
    """
    header, sep, data = url.partition(",")
    if not sep or not header.startswith("data:") or not header.endswith(";base64"):
        raise ValueError("not a base64 data URL")
    mime_type = header[len("data:") : -len(";base64")]
    try:
        return mime_type, base64.b64decode(data)
    except binascii.Error as e:
        raise ValueError(f"invalid base64 payload: {e}") from e


def _report_gateway_error(error: GatewayError) -> None:
    prefix = "Connection error" if error.is_transport_error else "Error"
    console.print(f"[red]{prefix}:[/red] {error.message}")


@app.command()
def version() -> None:
    """Show version information."""
    from hairlab import __version__

    console.print(f"hairlab v{__version__}")


@app.command()
def providers() -> None:
    """List known providers and their default models."""
    table = Table(title="Providers")
    table.add_column("Key", style="cyan")
    table.add_column("Credential")
    table.add_column("Suggestions model")
    table.add_column("Image model")
    for key, spec in sorted(KNOWN_PROVIDERS.items()):
        label = f"{key} (default)" if key == DEFAULT_PROVIDER else key
        table.add_row(label, spec.api_key_env, spec.suggestions_model, spec.image_model)
    console.print(table)


@app.command()
def serve(
    host: Annotated[str | None, typer.Option("--host", help="Bind address.")] = None,
    port: Annotated[int | None, typer.Option("--port", help="Bind port.")] = None,
) -> None:
    """Run the HTTP dispatcher.

    Exits with status 1 if the active provider's credential is missing.
    """
    import uvicorn

    from hairlab.api.app import create_app

    log = get_logger(__name__)
    try:
        settings = load_settings()
        registry = ProviderRegistry.from_settings(settings)
    except ConfigurationError as e:
        log.error("startup_failed", error=str(e))
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1) from None

    bind_host = host or settings.host
    bind_port = port or settings.port
    console.print(
        f"[green]✓[/green] Serving on http://{bind_host}:{bind_port} "
        f"(providers: {', '.join(registry.names)}, default: {registry.default_provider})"
    )
    uvicorn.run(
        create_app(registry, cors_origin=settings.cors_origin),
        host=bind_host,
        port=bind_port,
        log_level="debug" if _verbose >= 2 else "info" if _verbose else "warning",
    )


async def _suggest(
    image: ImagePayload, api_url: str | None, provider: str | None, model: str | None
) -> str:
    async with HairlabClient(api_url, provider=provider, suggestions_model=model) as client:
        return await client.get_suggestions(image)


@app.command()
def suggest(
    image: Annotated[Path, typer.Argument(help="Photo of the face to analyze.")],
    api_url: ApiUrlOption = None,
    provider: ProviderOption = None,
    model: ModelOption = None,
) -> None:
    """Suggest hairstyles that suit the face in IMAGE."""
    payload = read_image(image)
    with console.status("Analyzing face shape..."):
        try:
            suggestions = asyncio.run(_suggest(payload, api_url, provider, model))
        except GatewayError as e:
            _report_gateway_error(e)
            raise typer.Exit(1) from None

    console.print(Panel(Markdown(suggestions), title="Suggestions", border_style="cyan"))


async def _edit(
    subject: ImagePayload,
    prompt: str,
    reference: ImagePayload | None,
    api_url: str | None,
    provider: str | None,
    model: str | None,
) -> GenerationResult:
    async with HairlabClient(api_url, provider=provider, model=model) as client:
        return await client.edit_image(subject, prompt, reference)


@app.command()
def edit(
    image: Annotated[Path, typer.Argument(help="Photo of the subject.")],
    prompt: Annotated[
        str, typer.Option("--prompt", help="Hairstyle description (optional with --reference).")
    ] = "",
    reference: Annotated[
        Path | None,
        typer.Option("--reference", "-r", help="Photo whose hairstyle should be copied."),
    ] = None,
    output: Annotated[
        Path, typer.Option("--output", "-o", help="Where to save the generated image.")
    ] = DEFAULT_OUTPUT,
    api_url: ApiUrlOption = None,
    provider: ProviderOption = None,
    model: ModelOption = None,
) -> None:
    """Preview a new hairstyle on the subject in IMAGE and save it."""
    if not prompt.strip() and reference is None:
        console.print("[red]Error:[/red] Describe a hairstyle with --prompt or pass --reference")
        raise typer.Exit(1)

    subject = read_image(image)
    reference_payload = read_image(reference) if reference is not None else None

    with console.status("Generating preview..."):
        try:
            result = asyncio.run(
                _edit(subject, prompt, reference_payload, api_url, provider, model)
            )
        except GatewayError as e:
            _report_gateway_error(e)
            raise typer.Exit(1) from None

    if result.image:
        try:
            _, data = decode_data_url(result.image)
        except ValueError as e:
            console.print(f"[red]Error:[/red] The server returned an unreadable image ({e})")
            raise typer.Exit(1) from None
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(data)
        console.print(f"[green]✓[/green] Saved preview to {output}")
    if result.text:
        console.print(Panel(Markdown(result.text), title="Model notes", border_style="dim"))
