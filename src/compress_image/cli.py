"""Main CLI entry point."""

import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console

from compress_image.compressor import compress
from compress_image.config import Config
from compress_image.enhancement import enhance
from compress_image.errors import ImageProcessingError
from compress_image.logging_config import setup_logging
from compress_image.models import CompressionResult

console = Console(stderr=True)
load_dotenv()


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Logging level (defaults to LOG_LEVEL or INFO).",
)
@click.version_option(package_name="compress-image")
def main(log_level):
    """Compress images to a byte budget, or enhance them for OCR."""
    setup_logging(level=log_level)


@main.command("compress")
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--output", "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Output file path. Defaults to INPUT_PATH with a .min.webp suffix.",
)
@click.option(
    "--target-size", "-t",
    default=None,
    help="Byte budget, e.g. 300kb (defaults to COMPRESS_TARGET_SIZE).",
)
def compress_command(input_path, output, target_size):
    """Compress INPUT_PATH to a grayscale WebP within the byte budget."""
    config = _load_config(target_size=target_size)
    output = output or input_path.with_suffix(".min.webp")

    with console.status(f"[cyan]Compressing {input_path.name}..."):
        result = _run(compress, input_path, config.compress_budget())

    output.write_bytes(result.data)
    _print_summary(result, output, config.target_size)
    console.print(f"[dim]Winning parameters: {result.label}[/dim]")


@main.command("enhance")
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--output", "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Output file path. Defaults to INPUT_PATH with a .ocr.png suffix.",
)
@click.option(
    "--target-size", "-t",
    default=None,
    help="Byte budget, e.g. 100kb (defaults to COMPRESS_ENHANCE_TARGET_SIZE).",
)
def enhance_command(input_path, output, target_size):
    """Enhance INPUT_PATH for OCR and write a bilevel PNG within the byte budget."""
    config = _load_config(enhance_target_size=target_size)
    output = output or input_path.with_suffix(".ocr.png")

    with console.status(f"[cyan]Enhancing {input_path.name} for OCR..."):
        result = _run(enhance, input_path, config.enhance_budget())

    output.write_bytes(result.data)
    _print_summary(result, output, config.enhance_target_size)
    console.print(f"[dim]Applied: {', '.join(result.applied_steps)}[/dim]")


@main.command("serve")
@click.option("--host", default=None, help="Bind address (defaults to COMPRESS_HOST or 0.0.0.0).")
@click.option("--port", type=int, default=None, help="Port (defaults to PORT or 8080).")
def serve_command(host, port):
    """Run the HTTP service."""
    import uvicorn

    from compress_image.server import create_app

    config = _load_config(host=host, port=port)
    console.print(f"[green]Serving on http://{config.host}:{config.port}[/green]")
    uvicorn.run(create_app(config), host=config.host, port=config.port, log_config=None)


def _load_config(**overrides) -> Config:
    try:
        return Config.from_env(**overrides)
    except RuntimeError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


def _run(pipeline, input_path: Path, budget):
    try:
        return pipeline(input_path.read_bytes(), budget)
    except ImageProcessingError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


def _print_summary(result: CompressionResult, output: Path, budget: int) -> None:
    colour = "green" if result.fits else "yellow"
    console.print(
        f"[{colour}]Written to {output}[/{colour}] "
        f"({result.original_size} → {result.final_size} bytes, "
        f"{result.compression_ratio:.1f}% saved, {result.elapsed_ms}ms)"
    )
    if not result.fits:
        console.print(f"[yellow]Could not reach the {budget} byte budget; kept the last attempt.[/yellow]")
