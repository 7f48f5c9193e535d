"""Text heuristics over model output and assembled stories.

Everything here is pure string work: choice extraction, section splitting,
block classification and the cover-title guess used by the PDF export.
Nothing raises on odd input; callers always get a usable result.
"""

import logging
import re

log = logging.getLogger("story")

FALLBACK_CHOICES = ("continue the adventure", "take another path")

_OPTION_LINE = r"^[ \t>*_-]*Option[ \t]+{label}[ \t*_]*[:：][ \t*_]*(.+?)[ \t*_]*$"
_ANY_OPTION_RE = re.compile(
    r"^[ \t>*_-]*Option[ \t]+([A-Z][0-9]?|[0-9]+)[ \t*_]*[:：][ \t*_]*(.*?)[ \t*_]*$",
    re.IGNORECASE | re.MULTILINE,
)
HEADER_RE = re.compile(r"^[ \t]*={3,}[ \t]*(.+?)[ \t]*={3,}[ \t]*$", re.MULTILINE)

_NAME_PATTERNS = [
    re.compile(r"s'appel(?:le|ait)\s+([A-ZÀ-Ý][\wà-ÿ-]+)"),
    re.compile(r"nommée?\s+([A-ZÀ-Ý][\wà-ÿ-]+)"),
    re.compile(r"prénommée?\s+([A-ZÀ-Ý][\wà-ÿ-]+)"),
    re.compile(r"(?:named|called)\s+([A-Z][\w-]+)"),
]
_NOT_NAMES = {
    "Il", "Elle", "Ils", "Elles", "Le", "La", "Les", "Un", "Une", "Des", "Ce", "Cette",
    "Ces", "Son", "Sa", "Ses", "Mon", "Ma", "Mes", "Dans", "Depuis", "Quand", "Alors",
    "Mais", "Et", "Puis", "Option", "Page", "Fin", "Introduction", "Chaque", "Tout",
    "Toute", "Tous", "Au", "Aux", "Du", "De", "En", "Par", "Pour", "Sur", "Avec",
    "The", "A", "An", "He", "She", "It", "They", "One", "Once", "Every", "In",
}
_TITLE_KEYWORDS = [
    ("dragon", "Le secret du dragon"),
    ("pirate", "Le trésor des pirates"),
    ("espace", "Voyage dans les étoiles"),
    ("forêt", "Le mystère de la forêt"),
    ("château", "Le château enchanté"),
    ("foot", "Le grand match"),
    ("mer", "L'aventure en mer"),
]
DEFAULT_TITLE = "Mon histoire"


def normalize(text: str) -> str:
    return (text or "").replace("\r\n", "\n").replace("\r", "\n")


# ---------------------------------------------------------------------------
# Choices
# ---------------------------------------------------------------------------

def extract_choices(text: str, labels: tuple[str, str] = ("A", "B")) -> tuple[str, str]:
    """Return the two option texts found in ``text`` or the fallback pair.

    Looks for two consecutive lines ``Option <X> : ...`` / ``Option <Y> : ...``
    (blank lines allowed in between, bold markers and spacing tolerated).
    """
    first, second = (re.escape(label) for label in labels)
    pattern = re.compile(
        _OPTION_LINE.format(label=first) + r"\n(?:[ \t]*\n)*" + _OPTION_LINE.format(label=second),
        re.IGNORECASE | re.MULTILINE,
    )
    m = pattern.search(normalize(text))
    if m:
        choice_a, choice_b = m.group(1).strip(), m.group(2).strip()
        if choice_a and choice_b:
            return choice_a, choice_b
    log.info("    story_parser: no Option %s/%s pair found, using fallback choices", *labels)
    return FALLBACK_CHOICES


def strip_choices(text: str) -> str:
    """Remove option lines so only the narrative prose remains."""
    cleaned = _ANY_OPTION_RE.sub("", normalize(text))
    return re.sub(r"\n{3,}", "\n\n", cleaned).strip()


def parse_option_lines(block: str) -> list[tuple[str, str]]:
    """``[(letter, label), ...]`` for every option line in ``block``."""
    return [(m.group(1).upper(), m.group(2).strip()) for m in _ANY_OPTION_RE.finditer(normalize(block))]


# ---------------------------------------------------------------------------
# Sections and blocks
# ---------------------------------------------------------------------------

def split_sections(story_text: str) -> list[tuple[str, str]]:
    """Split an assembled story into ``[(heading, body), ...]``.

    Text before the first header (if any) becomes a section with an empty
    heading. Sections whose body is blank are dropped.
    """
    text = normalize(story_text)
    sections: list[tuple[str, str]] = []
    headers = list(HEADER_RE.finditer(text))
    if not headers:
        body = text.strip()
        return [("", body)] if body else []

    preamble = text[:headers[0].start()].strip()
    if preamble:
        sections.append(("", preamble))
    for i, m in enumerate(headers):
        end = headers[i + 1].start() if i + 1 < len(headers) else len(text)
        body = text[m.end():end].strip()
        sections.append((m.group(1).strip(), body))
    return [(h, b) for h, b in sections if h or b]


def classify_block(block: str) -> str:
    """Return ``"heading"``, ``"options"`` or ``"prose"`` for a text block."""
    stripped = normalize(block).strip()
    if not stripped:
        return "prose"
    if HEADER_RE.fullmatch(stripped):
        return "heading"
    lines = [line for line in stripped.split("\n") if line.strip()]
    if lines and all(_ANY_OPTION_RE.fullmatch(line) for line in lines):
        return "options"
    return "prose"


def section_parts(body: str) -> tuple[str, list[tuple[str, str]]]:
    """Split a section body into (prose, option lines), whatever the spacing."""
    prose_lines: list[str] = []
    options: list[tuple[str, str]] = []
    for line in normalize(body).split("\n"):
        m = _ANY_OPTION_RE.fullmatch(line)
        if m:
            options.append((m.group(1).upper(), m.group(2).strip()))
        else:
            prose_lines.append(line.rstrip())
    prose = re.sub(r"\n{3,}", "\n\n", "\n".join(prose_lines)).strip()
    return prose, options


# ---------------------------------------------------------------------------
# Misc heuristics
# ---------------------------------------------------------------------------

def extract_name(text: str) -> str | None:
    """Best guess at the hero's first name in ``text``."""
    text = normalize(text)
    for pattern in _NAME_PATTERNS:
        m = pattern.search(text)
        if m and m.group(1) not in _NOT_NAMES:
            return m.group(1)

    # First capitalised word that does not open a sentence
    for m in re.finditer(r"(?<![.!?:\n])\s([A-ZÀ-Ý][a-zà-ÿ]{2,})\b", text):
        if m.group(1) not in _NOT_NAMES:
            return m.group(1)
    return None


def extract_title(intro_text: str, fallback: str = DEFAULT_TITLE) -> str:
    """Derive a cover title from the introduction: hero name, then keywords."""
    name = extract_name(intro_text)
    if name:
        return f"Les aventures de {name}"
    lowered = (intro_text or "").lower()
    for keyword, title in _TITLE_KEYWORDS:
        if keyword in lowered:
            return title
    return fallback
