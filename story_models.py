"""Story data model: request, nodes, assembled story and generation params."""

from __future__ import annotations

from dataclasses import dataclass, field

# Tree shape is fixed here, not configurable.
NODE_ORDER = (
    "intro",
    "page1",
    "page2A",
    "page2B",
    "endingA1",
    "endingA2",
    "endingB1",
    "endingB2",
)

NODE_HEADINGS = {
    "intro": "Introduction",
    "page1": "Page 1",
    "page2A": "Page 2A",
    "page2B": "Page 2B",
    "endingA1": "Fin A1",
    "endingA2": "Fin A2",
    "endingB1": "Fin B1",
    "endingB2": "Fin B2",
    "story": "Histoire",
}

SECTION_HEADER = "=== {heading} ==="
SECTION_SEPARATOR = "\n\n"


@dataclass(frozen=True)
class GenerationParams:
    max_tokens: int = 1000
    temperature: float = 0.8
    top_p: float = 0.95


@dataclass(frozen=True)
class StoryRequest:
    child_info: str
    style: str
    title: str = ""
    subtitle: str = ""

    @classmethod
    def from_payload(cls, data: dict) -> StoryRequest:
        """Build from the ``/generate-story`` body. Caller validates first."""
        return cls(
            child_info=data["mainText"].strip(),
            style=data["style"].strip(),
            title=(data.get("headline") or "").strip(),
            subtitle=(data.get("subheadline") or "").strip(),
        )


@dataclass(frozen=True)
class Choice:
    label: str
    target: str


@dataclass(frozen=True)
class StoryNode:
    id: str
    text: str
    choices: tuple[Choice, ...] = ()

    @property
    def is_terminal(self) -> bool:
        return not self.choices

    @property
    def heading(self) -> str:
        return NODE_HEADINGS.get(self.id, self.id)


@dataclass(frozen=True)
class Story:
    title: str
    subtitle: str
    nodes: tuple[StoryNode, ...] = field(default_factory=tuple)

    def node(self, node_id: str) -> StoryNode | None:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    def to_text(self) -> str:
        """Flatten to one document: header, prose, then option lines."""
        blocks: list[str] = []
        for n in self.nodes:
            lines = [SECTION_HEADER.format(heading=n.heading), n.text.strip()]
            if n.choices:
                option_lines = [
                    f"Option {_option_letter(c.target)} : {c.label}" for c in n.choices
                ]
                lines.append("\n".join(option_lines))
            blocks.append("\n\n".join(lines))
        return SECTION_SEPARATOR.join(blocks)

    def to_sections(self) -> dict:
        """Title/goto node map for the interactive reader (sections "1".."N")."""
        numbers = {n.id: str(i) for i, n in enumerate(self.nodes, 1)}
        sections = {}
        for n in self.nodes:
            sections[numbers[n.id]] = {
                "text": n.text,
                "choices": [
                    {"text": c.label, "goto": numbers.get(c.target, c.target)}
                    for c in n.choices
                ],
            }
        return {"title": self.title, "subtitle": self.subtitle, "sections": sections}


def _option_letter(target: str) -> str:
    # page2A -> A, endingB1 -> B1
    if target.startswith("page2"):
        return target[len("page2"):]
    if target.startswith("ending"):
        return target[len("ending"):]
    return target
