"""vidqa CLI — inspect how a transcript file is normalized and retrieved.

Usage:
    vidqa ingest talk.srt --duration 600
    vidqa ingest cues.json --cues
    vidqa context talk.vtt "what does the speaker say about pricing?"
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import typer

from .context import assess_context
from .errors import VidqaError
from .retrieval import MAX_CONTEXT_CHARS, retrieve_context
from .schemas import NormalizedTranscript
from .transcript import ingest_transcript

app = typer.Typer(add_completion=False, pretty_exceptions_enable=False)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log pipeline steps to stderr"),
) -> None:
    """Transcript-grounded Q&A for hosted videos."""
    sys.stdout.reconfigure(encoding="utf-8")
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


def _load(path: Path, cues: bool, duration: float | None) -> NormalizedTranscript:
    raw = path.read_text(encoding="utf-8")
    try:
        if cues:
            data = json.loads(raw)
            if not isinstance(data, list):
                typer.echo("Error: --cues expects a JSON array of cue objects.", err=True)
                raise typer.Exit(1)
            return ingest_transcript(cues=data, duration_seconds=duration)
        return ingest_transcript(raw, duration_seconds=duration)
    except json.JSONDecodeError as exc:
        typer.echo(f"Error: invalid JSON in {path}: {exc}", err=True)
        raise typer.Exit(1)
    except VidqaError as exc:
        typer.echo(f"Error: {exc.message}", err=True)
        raise typer.Exit(1)


@app.command()
def ingest(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="SRT, VTT, plain text, or JSON cues"),
    duration: float = typer.Option(None, "--duration", help="Video length in seconds"),
    cues: bool = typer.Option(False, "--cues", help="Treat FILE as a JSON array of cues"),
) -> None:
    """Normalize a transcript file and print it as JSON."""
    transcript = _load(file, cues, duration)
    typer.echo(json.dumps(transcript.model_dump(by_alias=True), indent=2, ensure_ascii=False))


@app.command()
def context(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Transcript file"),
    question: str = typer.Argument(..., help="Question to retrieve context for"),
    duration: float = typer.Option(None, "--duration", help="Video length in seconds"),
    cues: bool = typer.Option(False, "--cues", help="Treat FILE as a JSON array of cues"),
    max_chars: int = typer.Option(MAX_CONTEXT_CHARS, "--max-chars", min=1, help="Excerpt length cap"),
) -> None:
    """Show the excerpt a question would be answered from."""
    transcript = _load(file, cues, duration)
    excerpt = retrieve_context(
        transcript.segments, question, max_chars, transcript_text=transcript.transcript_text
    )
    meta = assess_context(transcript_text=transcript.transcript_text)

    typer.echo(f"{'─' * 50}")
    typer.echo(f"quality={meta.quality.value} transcriptChars={meta.transcript_chars} "
               f"segments={transcript.segment_count}")
    typer.echo(f"{'─' * 50}")
    typer.echo(excerpt)


if __name__ == "__main__":
    app()
