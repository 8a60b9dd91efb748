#!/usr/bin/env python3
"""tldw: YouTube transcripts and summaries from the command line.

    tldw <video or playlist>              summarize
    tldw transcribe <video or playlist>   print the transcript
    tldw cp <video or playlist>           copy the transcript to the clipboard
    tldw metadata <video>                 print video metadata as JSON
"""

import functools
import json
import logging
import shutil
import subprocess
import sys
import threading
from contextlib import contextmanager, nullcontext
from dataclasses import dataclass

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.prompt import Confirm

from acquisition import AcquisitionPipeline, PipelineState
from content_ref import ContentKind, classify_input
from format_summary import DISPLAY_FORMATS, print_batch_report, print_metadata, print_summary
from playlist_batch import PlaylistBatch
from summarizer import PromptBuilder, Summarizer
from tldw_config import PROVIDERS, ensure_dirs, load_settings
from tldw_errors import (
    AcquisitionCancelledError,
    BatchFailedError,
    ClassificationError,
    ConfigError,
    ExternalToolError,
    FallbackDeclinedError,
    TldwError,
)
from video_cache import MetadataCache, TranscriptStore
from whisper_transcriber import ChunkedWhisperTranscriber
from youtube_media import AudioTool, YouTubeClient

__version__ = '0.1.0'

EXIT_FAILURE = 1
EXIT_DECLINED = 2
EXIT_INTERRUPTED = 130

CLIPBOARD_COMMANDS = (
    ('pbcopy',),
    ('wl-copy',),
    ('xclip', '-selection', 'clipboard'),
    ('xsel', '--clipboard', '--input'),
    ('clip',),
)

console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger('tldw')

STATUS = {
    PipelineState.CHECK_CACHE: 'Checking transcript cache...',
    PipelineState.CHECK_CAPTION_AVAILABILITY: 'Fetching video metadata...',
    PipelineState.FETCH_CAPTIONS: 'Downloading captions...',
    PipelineState.RETRY_CAPTIONS: 'Retrying caption download...',
    PipelineState.FALLBACK_DECISION: 'No usable captions found',
    PipelineState.DOWNLOAD_AUDIO: 'Downloading audio...',
    PipelineState.CHUNK: 'Preparing audio for Whisper...',
    PipelineState.TRANSCRIBE_CHUNKS: 'Transcribing audio...',
    PipelineState.REASSEMBLE: 'Joining transcript chunks...',
    PipelineState.PERSIST: 'Saving transcript...',
    PipelineState.SUCCESS: 'Transcript ready',
    PipelineState.DECLINED: 'Whisper transcription declined',
}


def setup_logging(verbose: bool, quiet: bool):
    level = logging.DEBUG if verbose else logging.ERROR if quiet else logging.WARNING
    handler = RichHandler(console=err_console, show_time=False, show_path=False, markup=False)
    logging.basicConfig(level=level, format='%(message)s', handlers=[handler], force=True)
    # yt-dlp and the API clients are chatty at DEBUG
    for name in ('httpx', 'httpcore', 'openai', 'anthropic'):
        logging.getLogger(name).setLevel(max(level, logging.INFO))


@dataclass
class Services:
    pipeline: AcquisitionPipeline
    batch: PlaylistBatch
    cancel_event: threading.Event


def build_services(settings, cancel_event, on_event=None, confirm=None, on_progress=None) -> Services:
    ensure_dirs(settings)
    youtube = YouTubeClient(settings.cache_dir, cancel_event)
    transcriber = ChunkedWhisperTranscriber.from_settings(settings, AudioTool(settings.temp_dir))
    metadata_cache = MetadataCache(settings.transcripts_dir)
    transcripts = TranscriptStore(settings.transcripts_dir)

    pipeline = AcquisitionPipeline(
        youtube, transcriber, metadata_cache, transcripts,
        confirm=confirm,
        on_event=on_event,
        retry_delay=settings.caption_retry_delay,
        cancel_event=cancel_event,
    )
    batch = PlaylistBatch(pipeline, youtube, metadata_cache, transcripts,
                          on_progress=on_progress, cancel_event=cancel_event)
    return Services(pipeline, batch, cancel_event)


@contextmanager
def acquisition_session(settings, description: str = 'Starting...'):
    """Services wired to a spinner and an interactive Whisper confirmation"""
    cancel_event = threading.Event()

    with Progress(
        SpinnerColumn(),
        TextColumn('[progress.description]{task.description}'),
        console=err_console,
        transient=True,
        disable=settings.quiet,
    ) as progress:
        task = progress.add_task(description, total=None)

        def on_event(event):
            status = STATUS.get(event.state, event.state.value)
            if event.message and event.state is PipelineState.TRANSCRIBE_CHUNKS:
                status = f"Transcribing {event.message}..."
            progress.update(task, description=status)

        def on_progress(index, total, url):
            progress.update(task, description=f"Processing video {index}/{total}...")

        def confirm(message):
            progress.stop()
            try:
                return Confirm.ask(message, console=err_console, default=False)
            except EOFError:
                return False
            finally:
                progress.start()

        services = build_services(settings, cancel_event, on_event=on_event,
                                  confirm=confirm, on_progress=on_progress)
        try:
            yield services
        except KeyboardInterrupt:
            cancel_event.set()
            raise


def handle_errors(f):
    """Map tldw errors to messages and exit codes"""
    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except ClassificationError as e:
            err_console.print(f"[red]Error: {e.args[0]}[/red]")
            if e.suggestion:
                err_console.print(f"[yellow]Tip: {e.suggestion}[/yellow]")
            sys.exit(EXIT_FAILURE)
        except FallbackDeclinedError:
            err_console.print('[yellow]No transcript: Whisper transcription was declined[/yellow]')
            sys.exit(EXIT_DECLINED)
        except ConfigError as e:
            err_console.print(f"[red]Configuration Error: {e}[/red]")
            err_console.print('[yellow]Tip: Set OPENAI_API_KEY in your .env file or environment[/yellow]')
            sys.exit(EXIT_FAILURE)
        except BatchFailedError as e:
            if e.result is not None:
                print_batch_report(e.result, err_console)
            err_console.print(f"[red]Error: {e}[/red]")
            sys.exit(EXIT_FAILURE)
        except (AcquisitionCancelledError, KeyboardInterrupt):
            err_console.print('\n[yellow]Interrupted[/yellow]')
            sys.exit(EXIT_INTERRUPTED)
        except TldwError as e:
            err_console.print(f"[red]Error: {e}[/red]")
            sys.exit(EXIT_FAILURE)
    return wrapper


def _classify(raw: str):
    ref = classify_input(raw)
    if ref.error is not None:
        raise ref.error
    return ref


def _acquire(services: Services, ref, fallback_whisper: bool, with_metadata: bool = False):
    """Returns (transcript, title, metadata).

    Metadata is only looked up when asked for, and is None for playlists or
    when the lookup fails; a transcript on disk is enough to carry on.
    """
    if ref.kind is ContentKind.PLAYLIST:
        text, result = services.batch.run(ref, allow_paid_fallback=fallback_whisper)
        print_batch_report(result, err_console)
        return text, result.title, None

    transcript = services.pipeline.acquire_transcript(ref, allow_paid_fallback=fallback_whisper)
    if not with_metadata:
        return transcript, '', None

    try:
        metadata = services.pipeline.acquire_metadata(ref)
    except AcquisitionCancelledError:
        raise
    except TldwError as e:
        logger.warning("Could not fetch metadata for %s: %s", ref.canonical_id, e)
        return transcript, '', None
    return transcript, metadata.title, metadata


def _write_output(path: str, content: str):
    with open(path, 'w', encoding='utf-8') as f:
        f.write(content)
    err_console.print(f"[green]✓ Saved to {path}[/green]")


def copy_to_clipboard(text: str):
    """Pipe text into the first clipboard tool found on PATH"""
    for cmd in CLIPBOARD_COMMANDS:
        if shutil.which(cmd[0]) is None:
            continue
        try:
            # xclip forks to own the selection, so its output must not be a pipe
            subprocess.run(cmd, input=text.encode('utf-8'), check=True,
                           stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        except (subprocess.CalledProcessError, OSError) as e:
            raise ExternalToolError(cmd[0], 'copying transcript to clipboard failed', str(e))
        return
    raise ExternalToolError('clipboard', 'no clipboard tool found (install xclip, xsel or wl-clipboard)')


class DefaultGroup(click.Group):
    """Sends anything that is not a subcommand to `summarize`"""

    default_command = 'summarize'

    def resolve_command(self, ctx, args):
        if args and self.get_command(ctx, args[0]) is None:
            args = [self.default_command, *args]
        return super().resolve_command(ctx, args)


@click.group(cls=DefaultGroup, context_settings={'ignore_unknown_options': True})
@click.option('--verbose', '-v', is_flag=True, help='Show debug logging')
@click.option('--quiet', '-q', is_flag=True, help='Only print results and errors')
@click.option('--config', 'config_file', type=click.Path(dir_okay=False), help='Path to config.toml')
@click.pass_context
@handle_errors
def cli(ctx, verbose, quiet, config_file):
    """Summarize or transcribe YouTube videos and playlists.

    Pass a video URL, video ID or playlist URL. Captions are used when the
    video has them; otherwise OpenAI Whisper can transcribe the audio
    (paid, asks first unless --fallback-whisper is given).
    """
    setup_logging(verbose, quiet)
    ctx.obj = load_settings(config_file, verbose=verbose or None, quiet=quiet or None)
    logger.debug("Transcripts in %s, cache in %s", ctx.obj.transcripts_dir, ctx.obj.cache_dir)


@cli.command()
@click.argument('target')
@click.option('--fallback-whisper', is_flag=True, help="Use Whisper without asking when captions are missing ($$$)")
@click.option('--model', help='Summary model (defaults to the configured tldr_model)')
@click.option('--provider', type=click.Choice(PROVIDERS), help='LLM provider for summarization')
@click.option('--prompt', help='Prompt template text or path to a template file')
@click.option('--display-format', type=click.Choice(DISPLAY_FORMATS), default='markdown',
              help='How to render the summary')
@click.option('--output', '-o', help='Write the summary to this file instead of the terminal')
@click.pass_obj
@handle_errors
def summarize(settings, target, fallback_whisper, model, provider, prompt, display_format, output):
    """Summarize a video or playlist (the default command)."""
    ref = _classify(target)
    with acquisition_session(settings, 'Fetching transcript...') as services:
        transcript, title, video = _acquire(services, ref, fallback_whisper, with_metadata=True)

    prompt_text = PromptBuilder(prompt or settings.prompt, settings.config_dir).build(
        transcript,
        title=title,
        channel=video.channel if video else '',
        description=video.description if video else '',
    )

    summarizer = Summarizer(settings, provider=provider, model=model)
    with err_console.status('Generating summary...', spinner='dots') if not settings.quiet else nullcontext():
        summary = summarizer.summarize(prompt_text)

    if output:
        _write_output(output, f"# {title}\n\n{summary}\n")
        return

    print_summary(summary, video, title=title or 'Summary', display_format=display_format, console=console)


@cli.command()
@click.argument('target')
@click.option('--fallback-whisper', is_flag=True, help="Use Whisper without asking when captions are missing ($$$)")
@click.option('--output', '-o', help='Write the transcript to this file instead of stdout')
@click.pass_obj
@handle_errors
def transcribe(settings, target, fallback_whisper, output):
    """Print the transcript of a video or playlist."""
    ref = _classify(target)
    with acquisition_session(settings, 'Fetching transcript...') as services:
        transcript, _, _ = _acquire(services, ref, fallback_whisper)

    if output:
        _write_output(output, transcript)
    else:
        click.echo(transcript)


@cli.command()
@click.argument('target')
@click.option('--fallback-whisper', is_flag=True, help="Use Whisper without asking when captions are missing ($$$)")
@click.pass_obj
@handle_errors
def cp(settings, target, fallback_whisper):
    """Copy the transcript of a video or playlist to the clipboard."""
    ref = _classify(target)
    with acquisition_session(settings, 'Fetching transcript...') as services:
        transcript, _, _ = _acquire(services, ref, fallback_whisper)

    copy_to_clipboard(transcript)
    if not settings.quiet:
        err_console.print('[green]✓ Transcript copied to clipboard[/green]')


@cli.command()
@click.argument('target')
@click.option('--pretty', is_flag=True, help='Indent the JSON output')
@click.option('--table', is_flag=True, help='Render a table instead of JSON')
@click.option('--output', '-o', help='Write the JSON to this file instead of stdout')
@click.pass_obj
@handle_errors
def metadata(settings, target, pretty, table, output):
    """Print title, channel, duration, captions and chapters of a video."""
    ref = _classify(target)
    with acquisition_session(settings, 'Fetching video metadata...') as services:
        video = services.pipeline.acquire_metadata(ref)

    if table:
        print_metadata(video, console)
        return

    data = json.dumps(video.to_dict(), indent=2 if pretty else None, ensure_ascii=False)
    if output:
        _write_output(output, data + '\n')
    else:
        click.echo(data)


@cli.command()
@click.pass_obj
def paths(settings):
    """Show where configuration, transcripts and downloads live."""
    click.echo(f"config:      {settings.config_dir}")
    click.echo(f"data:        {settings.data_dir}")
    click.echo(f"transcripts: {settings.transcripts_dir}")
    click.echo(f"cache:       {settings.cache_dir}")


@cli.command()
def version():
    """Print the tldw version."""
    click.echo(f"tldw {__version__}")


if __name__ == '__main__':
    cli()
