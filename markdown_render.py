"""
Markdown-to-HTML conversion for topic documents.

A small, line-based converter for the subset of Markdown used in the
training documents. It is not CommonMark; the supported dialect is:

  - ATX headings, levels 1-6 ("# " through "###### ", space required)
  - paragraphs (consecutive non-blank lines joined into one <p>)
  - **bold** / __bold__, *italic* / _italic_, `inline code`
  - fenced code blocks (``` or ~~~) with an optional language tag, kept as
    class="language-<tag>"; no syntax highlighting
  - unordered (-, *, +) and ordered (1.) lists, nesting by indentation
  - blockquotes (>) up to MAX_QUOTE_DEPTH levels, horizontal rules (---, ***, ___)
  - links [text](url) and images ![alt](src)

Anything else is emitted as escaped literal text. render() never raises for
string input.
"""

import html
import re
from typing import Any

import yaml

_HEADING_RE = re.compile(r'^(#{1,6})[ \t]+(.*)$')
_FENCE_RE = re.compile(r'^(\s{0,3})(`{3,}|~{3,})\s*([^`\s]*)')
_HR_RE = re.compile(r'^\s{0,3}([-*_])(?:\s*\1){2,}\s*$')
_UL_RE = re.compile(r'^(\s*)[-*+]\s+(.*)$')
_OL_RE = re.compile(r'^(\s*)\d{1,9}[.)]\s+(.*)$')
_QUOTE_RE = re.compile(r'^\s{0,3}>\s?(.*)$')

_CODE_SPAN_RE = re.compile(r'(`+)(.+?)\1')
_IMAGE_RE = re.compile(r'!\[([^\]]*)\]\(([^)\s]+)\)')
_LINK_RE = re.compile(r'\[([^\]]+)\]\(([^)\s]+)\)')
_PLACEHOLDER_RE = re.compile('\x00(\\d+)\x00')
_FRONTMATTER_RE = re.compile(r'^---\s*\n(.*?)\n---\s*(?:\n|$)(.*)$', re.DOTALL)

_UNSAFE_SCHEMES = ('javascript:', 'vbscript:', 'data:text/html')

# Quote markers nested deeper than this are kept as literal text
MAX_QUOTE_DEPTH = 32


def render(md: str) -> str:
    """
    Convert a Markdown document to an HTML fragment.

    Block structure is tracked with a handful of flags while walking the
    lines once; open blocks are closed whenever a line of another kind
    starts. Output blocks are separated by newlines.
    """
    return _render_blocks(md, 0)


def _render_blocks(md: str, depth: int) -> str:
    lines = md.replace('\r\n', '\n').replace('\r', '\n').split('\n')
    html_lines: list[str] = []
    paragraph: list[str] = []
    quote: list[str] = []
    lists: list[tuple[str, int]] = []  # open lists as (tag, indent), innermost last
    fence: tuple[str, int] | None = None  # (marker char, marker length) while inside a fence
    code: list[str] = []

    def flush_paragraph():
        if paragraph:
            html_lines.append(f'<p>{_inline(" ".join(paragraph))}</p>')
            paragraph.clear()

    def flush_quote():
        if quote:
            html_lines.append('<blockquote>')
            html_lines.append(_render_blocks('\n'.join(quote), depth + 1))
            html_lines.append('</blockquote>')
            quote.clear()

    def close_item():
        if html_lines and html_lines[-1].startswith('<li>') and not html_lines[-1].endswith('</li>'):
            html_lines[-1] += '</li>'
        else:
            html_lines.append('</li>')

    def close_lists(down_to: int = 0):
        while len(lists) > down_to:
            tag, _ = lists.pop()
            close_item()
            html_lines.append(f'</{tag}>')

    def close_blocks():
        flush_paragraph()
        flush_quote()
        close_lists()

    def next_nonblank(idx: int) -> str:
        for j in range(idx + 1, len(lines)):
            if lines[j].strip():
                return lines[j]
        return ''

    for i, line in enumerate(lines):
        # Inside a fenced code block everything is literal until the closing fence
        if fence is not None:
            stripped = line.strip()
            if stripped and set(stripped) == {fence[0]} and len(stripped) >= fence[1]:
                html_lines[-1] += html.escape('\n'.join(code)) + '</code></pre>'
                fence = None
                code = []
            else:
                code.append(line)
            continue

        fence_match = _FENCE_RE.match(line)
        if fence_match and not (fence_match.group(2)[0] == '`' and '`' in line[fence_match.end():]):
            close_blocks()
            marker = fence_match.group(2)
            lang = fence_match.group(3)
            attr = f' class="language-{html.escape(lang)}"' if lang else ''
            html_lines.append(f'<pre><code{attr}>')
            fence = (marker[0], len(marker))
            continue

        quote_match = _QUOTE_RE.match(line)
        if quote_match and depth < MAX_QUOTE_DEPTH and not (lists and line[:1].isspace()):
            flush_paragraph()
            close_lists()
            quote.append(quote_match.group(1))
            continue
        if quote and line.strip() and paragraph == [] and not _starts_block(line):
            # Lazy continuation of the last quoted line
            quote.append(line.strip())
            continue
        flush_quote()

        if not line.strip():
            flush_paragraph()
            if lists:
                nxt = next_nonblank(i)
                if not (_UL_RE.match(nxt) or _OL_RE.match(nxt)):
                    close_lists()
            continue

        heading = _HEADING_RE.match(line)
        if heading:
            close_blocks()
            level = len(heading.group(1))
            text = _strip_closing_hashes(heading.group(2).rstrip())
            html_lines.append(f'<h{level}>{_inline(text)}</h{level}>')
            continue

        if _HR_RE.match(line):
            close_blocks()
            html_lines.append('<hr>')
            continue

        item = _UL_RE.match(line)
        tag = 'ul'
        if not item:
            item = _OL_RE.match(line)
            tag = 'ol'
        if item:
            flush_paragraph()
            indent = len(item.group(1).expandtabs(4))
            while lists and lists[-1][1] > indent:
                close_lists(len(lists) - 1)
            if lists and lists[-1][1] == indent and lists[-1][0] != tag:
                close_lists(len(lists) - 1)
            if lists and lists[-1][1] == indent:
                close_item()
            else:
                html_lines.append(f'<{tag}>')
                lists.append((tag, indent))
            html_lines.append(f'<li>{_inline(item.group(2))}')
            continue

        if lists and not paragraph and html_lines[-1].startswith('<li>') and not html_lines[-1].endswith('</li>'):
            # Continuation text of the current list item
            html_lines[-1] += ' ' + _inline(line.strip())
            continue

        close_lists()
        paragraph.append(line.strip())

    if fence is not None:
        # Unclosed fence runs to the end of the document
        html_lines[-1] += html.escape('\n'.join(code)) + '</code></pre>'
    close_blocks()

    return '\n'.join(html_lines)


def _starts_block(line: str) -> bool:
    return bool(
        _HEADING_RE.match(line) or _HR_RE.match(line) or _FENCE_RE.match(line)
        or _UL_RE.match(line) or _OL_RE.match(line)
    )


def _strip_closing_hashes(text: str) -> str:
    """Drop a closing '#' run ("## Setup ##"), but not one glued to a word ("C#")."""
    trimmed = text.rstrip('#')
    if trimmed == text or (trimmed and trimmed[-1] not in ' \t'):
        return text
    return trimmed.rstrip()


def _safe_url(url: str) -> bool:
    return not html.unescape(url).strip().lower().startswith(_UNSAFE_SCHEMES)


def _emphasis(text: str) -> str:
    # Bold must come before italic so **bold** is not eaten by *italic* regex
    text = re.sub(r'\*\*(.+?)\*\*', r'<strong>\1</strong>', text)
    text = re.sub(r'(?<!\w)__(.+?)__(?!\w)', r'<strong>\1</strong>', text)
    text = re.sub(r'\*(.+?)\*', r'<em>\1</em>', text)
    text = re.sub(r'(?<!\w)_(.+?)_(?!\w)', r'<em>\1</em>', text)
    return text


def _inline(text: str) -> str:
    """Apply inline formatting after HTML-escaping."""
    stash: list[str] = []

    def keep(fragment: str) -> str:
        stash.append(fragment)
        return f'\x00{len(stash) - 1}\x00'

    def image(m: re.Match) -> str:
        alt, src = m.group(1), m.group(2)
        if not _safe_url(src):
            return m.group(0)
        return keep(f'<img src="{src}" alt="{alt}">')

    def link(m: re.Match) -> str:
        label, href = m.group(1), m.group(2)
        if not _safe_url(href):
            return m.group(0)
        return keep(f'<a href="{href}">{_emphasis(label)}</a>')

    text = text.replace('\x00', '')
    text = _CODE_SPAN_RE.sub(lambda m: keep(f'<code>{html.escape(m.group(2).strip())}</code>'), text)
    text = html.escape(text)
    text = _IMAGE_RE.sub(image, text)
    text = _LINK_RE.sub(link, text)
    text = _emphasis(text)

    def restore(s: str) -> str:
        return _PLACEHOLDER_RE.sub(lambda m: restore(stash[int(m.group(1))]), s)

    return restore(text)


# ---------------------------------------------------------------------------
# Frontmatter and plain text
# ---------------------------------------------------------------------------

def split_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Split YAML frontmatter from the body. Invalid frontmatter is left in the body."""
    match = _FRONTMATTER_RE.match(text)
    if not match:
        return {}, text
    try:
        frontmatter = yaml.safe_load(match.group(1))
    except yaml.YAMLError:
        return {}, text
    if not isinstance(frontmatter, dict):
        return {}, text
    return frontmatter, match.group(2)


def strip_frontmatter(text: str) -> str:
    return split_frontmatter(text)[1]


def first_heading(md: str) -> str | None:
    """Return the text of the first level-1 heading outside code fences."""
    in_fence = False
    for line in md.split('\n'):
        if _FENCE_RE.match(line):
            in_fence = not in_fence
            continue
        if not in_fence and line.startswith('# '):
            return extract_plain_text(line[2:]) or None
    return None


def extract_plain_text(md: str) -> str:
    """Strip markdown formatting from text, returning plain text."""
    result = []
    for line in md.split('\n'):
        # Strip block markers
        line = re.sub(r'^#{1,6}\s+', '', line)
        line = re.sub(r'^\s*>\s*', '', line)
        line = re.sub(r'^\s*[-*+]\s+', '', line)
        line = re.sub(r'^\s*\d+[.)]\s+', '', line)
        if _HR_RE.match(line) or _FENCE_RE.match(line):
            continue
        # Strip inline markers
        line = _IMAGE_RE.sub(r'\1', line)
        line = _LINK_RE.sub(r'\1', line)
        line = _CODE_SPAN_RE.sub(r'\2', line)
        line = re.sub(r'\*\*(.+?)\*\*', r'\1', line)
        line = re.sub(r'(?<!\w)__(.+?)__(?!\w)', r'\1', line)
        line = re.sub(r'\*(.+?)\*', r'\1', line)
        line = re.sub(r'(?<!\w)_(.+?)_(?!\w)', r'\1', line)
        stripped = line.strip()
        if stripped:
            result.append(stripped)
    return ' '.join(result)
