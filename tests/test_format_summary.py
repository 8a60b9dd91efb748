import pytest
from rich.console import Console

from format_summary import create_summary_sections, print_batch_report, print_metadata, print_summary
from playlist_batch import PlaylistResult, SkippedItem, VideoTranscript
from video_cache import VideoMetadata

SUMMARY = """**Main Topic:**
Caching strategies for web services.

**Key Points:**
- Cache close to the reader
- Invalidate on write

**Important Details or Examples:**
* A CDN in front of the API

**Conclusion:**
Measure before caching.
"""


@pytest.fixture
def console():
    return Console(record=True, width=100, color_system=None)


def test_create_summary_sections():
    sections = create_summary_sections(SUMMARY)

    assert sections['main_topic'] == 'Caching strategies for web services.'
    assert sections['key_points'] == ['Cache close to the reader', 'Invalidate on write']
    assert sections['details'] == ['A CDN in front of the API']
    assert sections['conclusion'] == 'Measure before caching.'


def test_plain_output_is_verbatim(console):
    print_summary('[bold]not markup[/bold]', display_format='plain', console=console)
    assert console.export_text().strip() == '[bold]not markup[/bold]'


def test_cards_render_each_section(console):
    metadata = VideoMetadata(title='Caching talk', channel='Conf', duration=125)
    print_summary(SUMMARY, metadata, display_format='cards', console=console)

    text = console.export_text()
    assert 'Caching talk' in text
    assert '2:05' in text
    for heading in ('Main Topic', 'Key Points', 'Conclusion'):
        assert heading in text


def test_batch_report_lists_skipped(console):
    result = PlaylistResult(
        title='Course',
        total=3,
        videos=[VideoTranscript('u1', 'First', 'Chan', 60, '', 'text')],
        skipped=[SkippedItem(2, 'Second', 'declined'), SkippedItem(3, '', 'metadata error')],
    )

    print_batch_report(result, console)

    text = console.export_text()
    assert 'Successfully processed 1 out of 3 videos' in text
    assert 'declined' in text
    assert 'metadata error' in text


def test_metadata_table(console):
    metadata = VideoMetadata(title='Caching talk', channel='Conf', duration=90, has_captions=True,
                             caption_languages=['en', 'es'], description='About caches')
    print_metadata(metadata, console)

    text = console.export_text()
    assert 'Caching talk' in text
    assert 'en, es' in text
    assert 'About caches' in text
