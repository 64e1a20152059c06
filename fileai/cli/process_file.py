"""CLI tool to run a fix/translate/analyze/custom action over an uploaded file."""
import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TaskProgressColumn
from rich.table import Table

from fileai.config import Settings
from fileai.tools.completion_client import GeminiCompletionClient
from fileai.tools.errors import PipelineError
from fileai.tools.file_actions import run_file_action


console = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Transform an uploaded document with the chunked completion pipeline"
    )
    parser.add_argument("file_id", help="File name inside the uploads directory")
    parser.add_argument(
        "--action",
        choices=["fix", "translate", "analyze", "custom"],
        required=True,
        help="Action to run"
    )
    parser.add_argument("--prompt", type=str, help="Instruction override (required for custom)")
    parser.add_argument("--uploads-dir", type=Path, help="Uploads directory (default: UPLOADS_DIR)")
    parser.add_argument("--model", type=str, help="Model identifier (default: CHAT_MODEL)")
    parser.add_argument("--max-chunk-tokens", type=int, help="Token budget per chunk")
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging (shows per-chunk progress and retries)"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging (shows request sizes, very verbose)"
    )
    return parser


def build_settings(args: argparse.Namespace) -> Settings:
    """Settings from the environment with command-line overrides applied."""
    settings = Settings.from_env(dotenv=False)
    overrides = {}
    if args.model is not None:
        overrides["chat_model"] = args.model
    if args.max_chunk_tokens is not None:
        overrides["max_chunk_tokens"] = args.max_chunk_tokens
    if args.uploads_dir is not None:
        overrides["uploads_dir"] = args.uploads_dir
    if overrides:
        settings = Settings(**{**settings.model_dump(), **overrides})
    return settings


def configure_logging(verbose: bool, debug: bool) -> None:
    if debug:
        log_level = logging.DEBUG
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    elif verbose:
        log_level = logging.INFO
        log_format = "%(asctime)s - %(levelname)s - %(message)s"
    else:
        log_level = logging.WARNING
        log_format = "%(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def main(argv=None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose, args.debug)

    try:
        settings = build_settings(args)
    except ValidationError as e:
        console.print("[red]✗ Invalid configuration[/red]")
        console.print(escape(str(e)))
        return 1

    client = GeminiCompletionClient(api_key=settings.google_api_key)

    console.print(f"\n[bold cyan]Running '{args.action}' on {args.file_id}...[/bold cyan]\n")

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
        ) as progress:
            task = progress.add_task("Processing chunks", total=None)

            def progress_callback(chunk_result, total_chunks):
                progress.update(task, total=total_chunks, completed=chunk_result.index + 1)

            result = run_file_action(
                file_id=args.file_id,
                action=args.action,
                client=client,
                settings=settings,
                prompt=args.prompt,
                progress_callback=progress_callback,
            )
    except PipelineError as e:
        failure = e.to_dict()
        console.print(f"[red]✗ Failed on chunk {failure['chunk_index']}: {failure['error']}[/red]")
        console.print(f"  {escape(failure['message'])}")
        return 1
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        return 1

    table = Table(title="File Action Summary")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="magenta")
    table.add_row("File", result.file_id)
    table.add_row("Action", result.action)
    table.add_row("Model", settings.chat_model)
    table.add_row("Chunks", str(result.num_chunks))
    table.add_row("Output", result.output_path or "-")
    console.print(table)

    if result.action == "analyze":
        console.print("\n[bold]Analysis:[/bold]")
        console.print(result.text)

    return 0


if __name__ == "__main__":
    sys.exit(main())
