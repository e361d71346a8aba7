"""Command-line interface for transcript-rag.

Uses Typer for a modern, type-hinted CLI experience.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, Optional

import typer
from dotenv import load_dotenv
from rich.console import Console

# Load environment variables from .env files
# Priority: local .env > ~/.transcript-rag/.env
_user_env = Path.home() / ".transcript-rag" / ".env"
if _user_env.exists():
    load_dotenv(_user_env)
load_dotenv()  # Load local .env (overrides user-level)
from rich.markup import escape
from rich.table import Table

from transcript_rag import __version__
from transcript_rag.config import RagSettings, RetrievalMode, load_settings, settings_from_env
from transcript_rag.errors import ConfigurationError, TranscriptRagError, format_error_for_display
from transcript_rag.logging import LogContext, LogLevel, enable_file_logging, set_verbosity
from transcript_rag.storage import StorageError

# Create the main Typer app
app = typer.Typer(
    name="transcript-rag",
    help="Correct misheard domain terms in speech transcripts using the speaker's own documents.",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()

CLI_SESSION_ID = "cli"


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"transcript-rag version {__version__}")
        raise typer.Exit()


def _load_settings(config_path: Path | None) -> RagSettings:
    """Settings from an optional JSON file with environment overrides applied."""
    try:
        base = load_settings(config_path) if config_path else RagSettings()
        return settings_from_env(base)
    except (ConfigurationError, FileNotFoundError) as e:
        console.print(f"[red]Error:[/red] {escape(format_error_for_display(e))}")
        raise typer.Exit(1)


def _content_type(path: Path) -> str:
    if path.suffix.lower() in (".md", ".markdown"):
        return "text/markdown"
    return "text/plain"


ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Settings JSON file."),
]


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show per-stage pipeline logs."),
    ] = False,
    log_file: Annotated[
        Optional[Path],
        typer.Option("--log-file", help="Also write debug logs to this file."),
    ] = None,
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Transcript RAG - domain-term correction for speech transcripts.

    [bold]extract[/bold]: Build a term corpus from slides, notes or scripts.

    [bold]correct[/bold]: Replace misheard low-confidence words with sound-alike
    terms from that corpus.
    """
    if verbose:
        set_verbosity(LogLevel.DEBUG)
    if log_file:
        enable_file_logging(log_file)


@app.command()
def extract(
    file: Annotated[Path, typer.Argument(help="Plain text or markdown document")],
    source_id: Annotated[
        Optional[str],
        typer.Option("--source-id", "-s", help="Source identifier (default: file name)"),
    ] = None,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Corpus JSON file to create or merge into"),
    ] = None,
    top: Annotated[
        int,
        typer.Option("--top", "-n", help="Number of terms to display"),
    ] = 20,
    config: ConfigOption = None,
) -> None:
    """Extract reference terms from a document.

    Prints the highest-ranked terms and optionally merges all of them into a
    corpus file used by the correct command.
    """
    from transcript_rag.ingest import DocumentIngestor
    from transcript_rag.providers import InMemoryCorpusProvider, PlainTextDocumentProvider
    from transcript_rag.vocabulary.corpus import TermCorpus
    from transcript_rag.vocabulary.extraction import TermExtractor

    if not file.exists():
        console.print(f"[red]Error:[/red] File not found: {file}")
        raise typer.Exit(1)

    settings = _load_settings(config)
    store = InMemoryCorpusProvider()
    ingestor = DocumentIngestor(
        PlainTextDocumentProvider(),
        TermExtractor(settings.extraction),
        store,
    )
    result = ingestor.ingest(CLI_SESSION_ID, file.read_bytes(), _content_type(file), source_id or file.name)

    if not result.success:
        console.print(f"[red]Error:[/red] {result.error}")
        raise typer.Exit(1)
    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")

    terms = store.get_terms(CLI_SESSION_ID)
    console.print(
        f"[green]Extracted {result.term_count} terms[/green] from {file.name} "
        f"in {result.processing_time_ms:.0f}ms"
    )

    if terms:
        table = Table(title=f"Top {min(top, len(terms))} terms")
        table.add_column("#", style="dim", width=4)
        table.add_column("Term", style="cyan")
        table.add_column("Category", style="white")
        table.add_column("Freq", justify="right")
        table.add_column("Code", style="dim")

        for i, term in enumerate(terms[:top], 1):
            table.add_row(str(i), term.term, term.category.value, str(term.frequency), term.phonetic_code)

        console.print()
        console.print(table)

    if output:
        try:
            corpus = TermCorpus.from_json_file(output) if output.exists() else TermCorpus()
            added = corpus.add_terms(terms)
            corpus.to_json_file(output)
        except (TranscriptRagError, StorageError) as e:
            console.print(f"[red]Error:[/red] {escape(format_error_for_display(e))}")
            raise typer.Exit(1)
        console.print(f"\nSaved corpus to {output} ({len(corpus)} terms, {added} new)")


@app.command()
def correct(
    transcript: Annotated[str, typer.Argument(help="Transcript text to correct")],
    corpus_file: Annotated[
        Path,
        typer.Option("--corpus", help="Corpus JSON file written by extract"),
    ],
    confidences: Annotated[
        Optional[Path],
        typer.Option(
            "--confidences",
            help="JSON list of {word, confidence, start, end} (default: every word uncertain)",
        ),
    ] = None,
    threshold: Annotated[
        Optional[float],
        typer.Option("--threshold", "-t", help="Confidence threshold for low-confidence words"),
    ] = None,
    mode: Annotated[
        Optional[RetrievalMode],
        typer.Option("--mode", "-m", help="Candidate retrieval mode"),
    ] = None,
    use_llm: Annotated[
        Optional[bool],
        typer.Option("--llm/--no-llm", help="Use a generative provider for correction"),
    ] = None,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the full result as JSON"),
    ] = False,
    config: ConfigOption = None,
) -> None:
    """Correct a transcript against a term corpus."""
    from transcript_rag.correction import CorrectionOrchestrator
    from transcript_rag.vocabulary.corpus import TermCorpus

    settings = _load_settings(config)
    if mode is not None:
        settings.retrieval.mode = mode
    if use_llm is not None:
        settings.correction.use_generative = use_llm

    try:
        corpus = TermCorpus.from_json_file(corpus_file)
    except (TranscriptRagError, StorageError) as e:
        console.print(f"[red]Error:[/red] {escape(format_error_for_display(e))}")
        raise typer.Exit(1)

    payload: dict = {"transcript": transcript, "sessionId": CLI_SESSION_ID}
    if threshold is not None:
        payload["confidenceThreshold"] = threshold
    if confidences:
        try:
            payload["wordConfidences"] = json.loads(confidences.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            console.print(f"[red]Error:[/red] Cannot read confidences file: {e}")
            raise typer.Exit(1)

    try:
        orchestrator = CorrectionOrchestrator(settings)
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {escape(format_error_for_display(e))}")
        raise typer.Exit(1)

    with LogContext(command="correct", corpus=str(corpus_file)):
        result = orchestrator.correct_payload(payload, corpus=corpus)

    if as_json:
        typer.echo(json.dumps(result.to_payload(), indent=2))
        return

    console.print(f"[bold]Original:[/bold]  {result.original_transcript}")
    console.print(f"[bold]Corrected:[/bold] {result.corrected_transcript}")

    if result.corrections:
        table = Table(title=f"{len(result.corrections)} corrections")
        table.add_column("Original", style="red")
        table.add_column("Corrected", style="green")
        table.add_column("Type", style="cyan")
        table.add_column("Confidence", justify="right")
        table.add_column("Reason", style="dim", max_width=50)

        for detail in result.corrections:
            table.add_row(
                detail.original,
                detail.corrected,
                detail.match_type.value,
                f"{detail.confidence:.0%}",
                detail.reason,
            )

        console.print()
        console.print(table)
    else:
        console.print("\n[dim]No corrections applied.[/dim]")

    for warning in result.warnings or []:
        console.print(f"[yellow]Warning:[/yellow] {warning}")

    console.print(
        f"\n[dim]{result.terms_retrieved} candidate terms, {result.processing_time_ms:.1f}ms[/dim]"
    )


@app.command()
def similarity(
    query: Annotated[str, typer.Argument(help="Heard word or phrase")],
    target: Annotated[str, typer.Argument(help="Reference term")],
) -> None:
    """Show how alike two words or phrases sound."""
    from transcript_rag.vocabulary.phonetic import similarity as score_similarity

    result = score_similarity(query, target)
    console.print(f"[bold]Similarity:[/bold] {result.score:.3f} ({result.matched_by})")
    console.print(f"  {query!r}: {result.query_code}")
    console.print(f"  {target!r}: {result.term_code}")


@app.command()
def codes(
    text: Annotated[str, typer.Argument(help="Word or phrase")],
) -> None:
    """Show every phonetic code of a word or phrase."""
    from transcript_rag.vocabulary.phonetic import all_phonetic_codes

    table = Table(title=f"Phonetic codes for '{text}'")
    table.add_column("Algorithm", style="cyan")
    table.add_column("Code", style="white")

    for name, code in all_phonetic_codes(text).items():
        table.add_row(name, code or "-")

    console.print(table)


if __name__ == "__main__":
    app()
