"""Typer CLI entry point for voicenotes."""

from __future__ import annotations

import threading
from typing import List, Optional

import typer

from .config import (
    EnvironmentSettingError,
    clear_environment_setting,
    get_settings,
    list_environment_settings,
    update_environment_setting,
)
from .core.audio.sounddevice_backend import format_device_table
from .core.errors import SessionError
from .data.models import Note, RecordingState
from .logging import configure_logging, get_logger
from .services.factory import ServiceConfigurationError, build_engine, open_note_store

app = typer.Typer(help="voicenotes: dictate, transcribe and organise voice notes")
notes_app = typer.Typer(help="Browse and manage saved notes")
settings_app = typer.Typer(help="Inspect and override VOICENOTES_* settings")
app.add_typer(notes_app, name="notes")
app.add_typer(settings_app, name="settings")

LOGGER = get_logger(__name__)

RECORD_HELP = (
    "Commands: [p]ause, [r]esume, [s]top and save, [c]ancel, "
    "[g]rammar correction on/off, sentence [d]etection on/off"
)


def _format_note_line(note: Note) -> str:
    tags = f" [{', '.join(note.tags)}]" if note.tags else ""
    return f"{note.id}  {note.title}{tags}"


def _echo_notes(notes: List[Note]) -> None:
    if not notes:
        typer.echo("No notes found.")
        return
    for note in notes:
        typer.echo(_format_note_line(note))


@app.command()
def devices() -> None:
    """List available audio input devices."""

    configure_logging(get_settings().log_level)
    typer.echo(format_device_table())


@app.command()
def record(
    backend: Optional[str] = typer.Option(None, help="Recognition backend: dummy/openai"),
    tagging: Optional[str] = typer.Option(None, help="Tagging backend: none/keyword/openai"),
    device: Optional[str] = typer.Option(None, help="Preferred input device id/name"),
    language: Optional[str] = typer.Option(None, help="Recognition language, e.g. en-US"),
    grammar: Optional[bool] = typer.Option(None, "--grammar/--no-grammar", help="Apply grammar correction"),
    duration: Optional[float] = typer.Option(None, help="Stop and save after this many seconds"),
) -> None:
    """Dictate a new note."""

    settings = get_settings()
    configure_logging(settings.log_level)
    finished = threading.Event()

    def _on_transcript(text: str) -> None:
        if text:
            typer.echo(f"\n--- transcript ---\n{text}\n------------------")

    def _on_state(state: RecordingState) -> None:
        typer.echo(f"[{state.value}]")

    def _on_error(error: SessionError) -> None:
        typer.secho(f"Error ({error.category.value}): {error.message}", fg=typer.colors.RED, err=True)

    def _on_diagnostic(message: str) -> None:
        typer.secho(message, fg=typer.colors.YELLOW, err=True)

    try:
        engine = build_engine(
            settings,
            recognition_backend=backend,
            tagging_backend=tagging,
            on_transcript_update=_on_transcript,
            on_state_change=_on_state,
            on_error=_on_error,
            on_diagnostic=_on_diagnostic,
        )
    except (ServiceConfigurationError, RuntimeError) as exc:
        raise typer.BadParameter(str(exc)) from exc

    if device is not None:
        engine.set_preferred_microphone(device)
    if language is not None:
        engine.set_language(language)
    if grammar is not None:
        engine.set_grammar_correction_enabled(grammar)

    if not engine.start():
        raise typer.Exit(code=1)

    result = None
    try:
        if duration is not None:
            typer.echo(f"Recording for {duration:g}s; press Ctrl+C to stop early")
            finished.wait(duration)
        else:
            typer.echo(RECORD_HELP)
        while duration is None:
            try:
                choice = input().strip().lower()
            except EOFError:
                break
            if choice in {"p", "pause"}:
                engine.pause()
            elif choice in {"r", "resume"}:
                engine.resume()
            elif choice in {"s", "stop", "q"}:
                break
            elif choice in {"c", "cancel"}:
                engine.cancel()
                typer.echo("Recording discarded.")
                return
            elif choice in {"g", "grammar"}:
                engine.set_grammar_correction_enabled(not engine.config.grammar_correction_enabled)
            elif choice in {"d", "detect"}:
                engine.set_sentence_detection_enabled(not engine.config.sentence_detection_enabled)
            elif choice:
                typer.echo(RECORD_HELP)
    except KeyboardInterrupt:
        LOGGER.info("Recording interrupted by user; saving note")
    finally:
        if engine.state is not RecordingState.INACTIVE:
            result = engine.stop()

    if result is not None and result.created:
        typer.echo(f"Saved note {result.id}")
        if result.audio_ref:
            typer.echo(f"Audio: {result.audio_ref}")
    else:
        typer.echo("No note was saved.")


@notes_app.command("list")
def notes_list(folder: Optional[str] = typer.Option(None, help="Only notes in this folder")) -> None:
    """List saved notes, newest first."""

    store = open_note_store()
    _echo_notes(store.list(folder))


@notes_app.command("show")
def notes_show(note_id: str = typer.Argument(..., help="Note id")) -> None:
    """Print a note."""

    note = open_note_store().get(note_id)
    if note is None:
        typer.echo(f"Note not found: {note_id}", err=True)
        raise typer.Exit(code=1)
    typer.echo(note.title)
    typer.echo("=" * len(note.title))
    typer.echo(note.content)
    if note.summary and note.summary != note.content:
        typer.echo(f"\nSummary: {note.summary}")
    if note.tags:
        typer.echo(f"\nTags: {', '.join(note.tags)}")
    if note.audio_ref:
        typer.echo(f"Audio: {note.audio_ref}")


@notes_app.command("search")
def notes_search(query: str = typer.Argument(..., help="Text to look for")) -> None:
    """Search titles, content and tags."""

    _echo_notes(open_note_store().search(query))


@notes_app.command("tags")
def notes_tags(tag: str = typer.Argument(..., help="Tag to filter by")) -> None:
    """List notes carrying a tag."""

    _echo_notes(open_note_store().query_by_tag(tag.lower()))


@notes_app.command("delete")
def notes_delete(note_id: str = typer.Argument(..., help="Note id")) -> None:
    """Delete a note."""

    store = open_note_store()
    if store.get(note_id) is None:
        typer.echo(f"Note not found: {note_id}", err=True)
        raise typer.Exit(code=1)
    store.delete(note_id)
    typer.echo(f"Deleted {note_id}")


@settings_app.command("list")
def settings_list() -> None:
    """Show every setting and its environment variable."""

    for entry in list_environment_settings():
        marker = "" if entry.value == entry.default else " *"
        typer.echo(f"{entry.env_name}={entry.value}{marker}")


@settings_app.command("set")
def settings_set(field: str, value: str) -> None:
    """Persist an override in the .env file."""

    try:
        settings = update_environment_setting(field, value)
    except EnvironmentSettingError as exc:
        raise typer.BadParameter(str(exc)) from exc
    typer.echo(f"{field} = {getattr(settings, field)}")


@settings_app.command("clear")
def settings_clear(field: str) -> None:
    """Remove an override from the .env file."""

    try:
        settings = clear_environment_setting(field)
    except EnvironmentSettingError as exc:
        raise typer.BadParameter(str(exc)) from exc
    typer.echo(f"{field} = {getattr(settings, field)}")


if __name__ == "__main__":  # pragma: no cover
    app()
