"""Prompt templates for every pipeline stage (French children's stories)."""

from story_models import GenerationParams, StoryRequest

SYSTEM_PROMPT = (
    "Tu es un auteur d'histoires pour enfants de 4 à 10 ans. "
    "Tu écris en français, avec des phrases simples, un ton bienveillant et "
    "des images concrètes. Aucune violence, aucune peur durable. "
    "Le héros est l'enfant décrit par ses parents : respecte son prénom et ses goûts. "
    "N'ajoute jamais de titre, de commentaire ni de note en dehors du texte demandé."
)

STYLE_HINTS = {
    "aventure": "une aventure pleine d'action, de découvertes et de courage",
    "fantastique": "un monde magique avec des créatures merveilleuses",
    "conte": "un conte traditionnel avec une morale douce",
    "mystere": "une petite énigme à résoudre, sans rien d'effrayant",
    "science-fiction": "un voyage dans l'espace ou dans le futur avec des robots amicaux",
    "humour": "une histoire drôle avec des situations cocasses",
}

INTRO_PARAMS = GenerationParams(max_tokens=500, temperature=0.8, top_p=0.95)
PAGE_PARAMS = GenerationParams(max_tokens=800, temperature=0.8, top_p=0.95)
ENDING_PARAMS = GenerationParams(max_tokens=700, temperature=0.7, top_p=0.9)
SIMPLE_PARAMS = GenerationParams(max_tokens=2000, temperature=0.8, top_p=0.95)

END_MARKER = "FIN"

_OPTIONS_FORMAT = (
    "Termine OBLIGATOIREMENT par exactement deux lignes, sans rien après :\n"
    "Option {a} : <premier choix, une phrase courte>\n"
    "Option {b} : <second choix, une phrase courte>"
)


def style_hint(style: str) -> str:
    return STYLE_HINTS.get(style.lower(), f"une histoire de style « {style} »")


def _context(request: StoryRequest) -> str:
    lines = [f"Ce que les parents racontent de l'enfant : {request.child_info}",
             f"Style souhaité : {style_hint(request.style)}"]
    if request.title:
        lines.append(f"Titre choisi : {request.title}")
    if request.subtitle:
        lines.append(f"Sous-titre : {request.subtitle}")
    return "\n".join(lines)


def build_intro_prompt(request: StoryRequest) -> str:
    return (
        f"{_context(request)}\n\n"
        "Écris l'introduction de l'histoire (environ 120 mots) : présente le héros, "
        "son caractère, ce qu'il aime et l'endroit où il vit. Ne pose encore aucun choix."
    )


def build_page1_prompt(request: StoryRequest, intro: str) -> str:
    return (
        f"{_context(request)}\n\n"
        f"Introduction déjà écrite :\n{intro}\n\n"
        "Écris la page 1 (environ 150 mots) : un événement inattendu lance l'aventure "
        "et le héros doit faire un choix.\n"
        + _OPTIONS_FORMAT.format(a="A", b="B")
    )


def build_page2_prompt(request: StoryRequest, intro: str, page1: str, choice: str, branch: str) -> str:
    return (
        f"{_context(request)}\n\n"
        f"Introduction :\n{intro}\n\n"
        f"Page 1 :\n{page1}\n\n"
        f"Le lecteur a choisi : « {choice} ».\n\n"
        f"Écris la page 2{branch} (environ 150 mots) qui raconte la suite de ce choix. "
        "L'aventure se complique un peu et le héros doit choisir à nouveau.\n"
        + _OPTIONS_FORMAT.format(a=f"{branch}1", b=f"{branch}2")
    )


def build_ending_prompt(request: StoryRequest, page2: str, choice: str, leaf: str) -> str:
    return (
        f"{_context(request)}\n\n"
        f"Page précédente :\n{page2}\n\n"
        f"Le lecteur a choisi : « {choice} ».\n\n"
        f"Écris la fin {leaf} de l'histoire (environ 150 mots). La fin doit être heureuse "
        "et rassurante, le héros a appris quelque chose. Ne propose plus aucun choix. "
        f"Termine par le mot {END_MARKER} seul sur la dernière ligne."
    )


def build_simple_prompt(request: StoryRequest) -> str:
    return (
        f"{_context(request)}\n\n"
        "Écris une histoire complète d'environ 600 mots, découpée en courts paragraphes, "
        f"avec un début, une aventure et une fin heureuse. Termine par le mot {END_MARKER}."
    )


def build_continue_prompt(previous_part: str, choice_made: str) -> str:
    return (
        f"Voici la dernière partie de l'histoire :\n{previous_part}\n\n"
        f"Le lecteur a choisi : « {choice_made} ».\n\n"
        "Écris la suite (environ 150 mots) en respectant les personnages et le ton.\n"
        + _OPTIONS_FORMAT.format(a="A", b="B")
    )
