"""Inline HTML rendering of an assembled story for the form page."""

import html
import re

from story_models import NODE_HEADINGS
from story_parser import HEADER_RE, classify_block, normalize, parse_option_lines


def section_anchor(heading: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", heading.lower()).strip("-")
    return f"section-{slug or 'story'}"


def option_target(letter: str) -> str:
    """Anchor of the section an option leads to: A -> Page 2A, A1 -> Fin A1."""
    if len(letter) == 1:
        return section_anchor(NODE_HEADINGS.get(f"page2{letter}", f"Page 2{letter}"))
    return section_anchor(NODE_HEADINGS.get(f"ending{letter}", f"Fin {letter}"))


def _blocks(story_text: str) -> list[str]:
    # Header lines always stand alone, whatever spacing the text uses
    text = HEADER_RE.sub(lambda m: f"\n\n{m.group(0).strip()}\n\n", normalize(story_text))
    return [b.strip() for b in re.split(r"\n\s*\n", text) if b.strip()]


class _Page:
    def __init__(self, heading: str = ""):
        self.heading = heading
        self.paragraphs: list[str] = []
        self.parts: list[str] = []

    def flush_prose(self):
        if self.paragraphs:
            paras = "".join(f"<p>{html.escape(p).replace(chr(10), '<br>')}</p>" for p in self.paragraphs)
            self.parts.append(f'<div class="story-text">{paras}</div>')
            self.paragraphs = []

    def add_options(self, options: list[tuple[str, str]]):
        self.flush_prose()
        buttons = "".join(
            f'<button type="button" class="choice-button" data-goto="{option_target(letter)}">'
            f"Option {html.escape(letter)} : {html.escape(label)}</button>"
            for letter, label in options
        )
        self.parts.append(f'<div class="story-options">{buttons}</div>')

    def render(self) -> str:
        self.flush_prose()
        out = [f'<div class="story-page" id="{section_anchor(self.heading)}">']
        if self.heading:
            out.append(f'<h2 class="page-heading">{html.escape(self.heading)}</h2>')
        out.extend(self.parts)
        out.append("</div>")
        return "".join(out)


def render_story_html(story_text: str) -> str:
    """Wrap every blank-line block in presentation containers.

    Each block is classified: a header opens a new ``div.story-page``,
    an options block becomes ``div.story-options`` with one
    ``button.choice-button`` per option (carrying the anchor to jump to),
    anything else is prose inside ``div.story-text``.
    """
    pages: list[_Page] = []
    for block in _blocks(story_text):
        kind = classify_block(block)
        if kind == "heading":
            pages.append(_Page(HEADER_RE.fullmatch(block).group(1).strip()))
            continue
        if not pages:
            pages.append(_Page())
        if kind == "options":
            pages[-1].add_options(parse_option_lines(block))
        else:
            pages[-1].paragraphs.append(block)
    return "\n".join(page.render() for page in pages)
