"""Subtitle (SRT) to plain transcript text"""

from typing import List


def _is_timing(line: str) -> bool:
    return '-->' in line


def parse_srt(content: str) -> List[str]:
    """Extract the text lines of every cue, dropping index and timing lines.

    Blocks that carry no timing line are already plain text and are kept
    whole, which makes re-normalizing a finished transcript a no-op.
    """
    lines = []
    content = content.replace('\r\n', '\n').replace('\r', '\n')

    for block in content.split('\n\n'):
        block_lines = block.strip('\n').split('\n')
        if len(block_lines) >= 2 and _is_timing(block_lines[1]):
            # index, timing, text... (cues without text yield nothing)
            text_lines = block_lines[2:]
        elif _is_timing(block_lines[0]):
            text_lines = block_lines[1:]
        else:
            text_lines = block_lines

        for line in text_lines:
            line = line.strip()
            if line:
                lines.append(line)

    return lines


def remove_overlaps(lines: List[str]) -> List[str]:
    """Collapse the rolling text auto-captions emit.

    A line contained in the previous kept line is dropped. A line that
    contains the previous kept line replaces it, and keeps replacing for as
    long as the new last kept line is also contained in it, so one long line
    can absorb several shorter ones before it. Without that, running the
    output through again could still shrink it. A plain repeat of a line two
    or more lines back (no containment in between) survives.
    """
    kept = []
    for line in lines:
        if kept and line in kept[-1]:
            continue
        while kept and kept[-1] in line:
            kept.pop()
        kept.append(line)
    return kept


def normalize_subtitles(content: str) -> str:
    return '\n'.join(remove_overlaps(parse_srt(content))).strip()
