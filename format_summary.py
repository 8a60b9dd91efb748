"""Terminal rendering for summaries, playlist reports and metadata"""

from typing import Optional

from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from playlist_batch import PlaylistResult, format_duration
from video_cache import VideoMetadata

DISPLAY_FORMATS = ('markdown', 'cards', 'plain')


def create_summary_sections(summary: str) -> dict:
    """Parse summary into structured sections for the card display."""
    sections = {
        'main_topic': '',
        'key_points': [],
        'details': [],
        'conclusion': ''
    }

    current_section = None
    for line in summary.split('\n'):
        line = line.strip()
        if not line:
            continue

        lower = line.lower()
        if 'main topic' in lower:
            current_section = 'main_topic'
        elif 'key points' in lower:
            current_section = 'key_points'
        elif 'important details' in lower or 'examples' in lower:
            current_section = 'details'
        elif 'conclusion' in lower or 'main takeaway' in lower:
            current_section = 'conclusion'
        elif line.startswith(('-', '•', '*')):
            content = line.lstrip('-•* ').strip()
            if current_section == 'key_points':
                sections['key_points'].append(content)
            elif current_section == 'details':
                sections['details'].append(content)
        elif current_section == 'main_topic':
            sections['main_topic'] += line + ' '
        elif current_section == 'conclusion':
            sections['conclusion'] += line + ' '

    sections['main_topic'] = sections['main_topic'].strip()
    sections['conclusion'] = sections['conclusion'].strip()
    return sections


def _print_header(console: Console, title: str, channel: str = '', duration: float = 0):
    console.print()
    console.print(f"[bold bright_cyan]📹 {title}[/bold bright_cyan]")
    if channel or duration:
        console.print(f"[dim]👤 {channel or 'Unknown'} | ⏱️ {format_duration(duration)}[/dim]")
    console.print()


def print_summary_cards(summary: str, console: Console):
    sections = create_summary_sections(summary)
    if not any(sections.values()):
        # Free-form answer, nothing to split into cards
        console.print(Panel(Markdown(summary), border_style='bright_cyan', box=box.ROUNDED))
        return

    cards = (
        ('📌 Main Topic', sections['main_topic'], 'bright_blue'),
        ('🔑 Key Points', '\n'.join(f"• {p}" for p in sections['key_points']), 'bright_green'),
        ('💡 Important Details & Examples', '\n'.join(f"• {d}" for d in sections['details']), 'bright_yellow'),
        ('🎯 Conclusion', sections['conclusion'], 'bright_magenta'),
    )
    for heading, text, style in cards:
        if text:
            console.print(Panel(
                text,
                title=f"[bold]{heading}[/bold]",
                title_align='left',
                border_style=style,
                box=box.ROUNDED,
                padding=(0, 1)
            ))


def print_summary(summary: str, metadata: Optional[VideoMetadata] = None, title: str = 'Summary',
                  display_format: str = 'markdown', console: Optional[Console] = None):
    console = console or Console()

    if display_format == 'plain':
        console.print(summary, markup=False, highlight=False)
        return

    if metadata is not None:
        _print_header(console, metadata.title, metadata.channel, metadata.duration)

    if display_format == 'cards':
        print_summary_cards(summary, console)
    else:
        console.print(Panel(
            Markdown(summary),
            title=f"[bold bright_cyan]{title}[/bold bright_cyan]",
            border_style='bright_cyan',
            box=box.ROUNDED,
            padding=(1, 2),
            expand=True
        ))
    console.print()


def print_batch_report(result: PlaylistResult, console: Optional[Console] = None):
    console = console or Console(stderr=True)

    console.print(f"[green]Successfully processed {result.succeeded} out of {result.total} videos[/green]")
    if not result.skipped:
        return

    table = Table(title=f"Skipped {len(result.skipped)} videos", box=box.SIMPLE)
    table.add_column('#', justify='right', style='dim')
    table.add_column('Title')
    table.add_column('Reason', style='yellow')
    for item in result.skipped:
        table.add_row(str(item.index), item.title or '-', item.category)
    console.print(table)


def print_metadata(metadata: VideoMetadata, console: Optional[Console] = None):
    console = console or Console()

    table = Table(show_header=False, box=box.ROUNDED)
    table.add_column('Field', style='bold cyan')
    table.add_column('Value')
    table.add_row('Title', metadata.title)
    table.add_row('Channel', metadata.channel)
    table.add_row('Duration', format_duration(metadata.duration))
    table.add_row('Captions', ', '.join(metadata.caption_languages) if metadata.has_captions else 'none')
    if metadata.categories:
        table.add_row('Categories', ', '.join(metadata.categories))
    if metadata.tags:
        table.add_row('Tags', ', '.join(metadata.tags[:15]))
    for chapter in metadata.chapters:
        table.add_row(format_duration(chapter.start_time), chapter.title)
    console.print(table)
    if metadata.description:
        console.print(Panel(metadata.description, title='Description', box=box.ROUNDED))
