"""Soccer vocabulary shared by the relevance gate and the dictionary translator.

Everything here is built once at import time and is read-only afterwards:

* ``KEYWORDS`` - per-language relevance terms, lower-cased, matched as
  substrings of the lower-cased transcript.
* ``_GLOSSARY`` - concept rows listing the surface forms of one soccer term in
  every supported language. The first form of each language is the canonical
  one used as substitution output; the rest are accepted as input only.
* phrase tables - one per ordered language pair, derived from the glossary,
  plus a compiled single-pass pattern for whole-word replacement.
"""

from __future__ import annotations

import re
from itertools import permutations
from types import MappingProxyType
from typing import Final, Mapping, Optional

SUPPORTED_LANGUAGES: Final[tuple[str, ...]] = ("en", "es", "it", "de", "fr")

LANGUAGE_NAMES: Final[Mapping[str, str]] = MappingProxyType(
    {
        "en": "English",
        "es": "Spanish",
        "it": "Italian",
        "de": "German",
        "fr": "French",
    }
)

KEYWORDS: Final[Mapping[str, frozenset[str]]] = MappingProxyType(
    {
        "en": frozenset(
            {
                "goal",
                "penalty",
                "red card",
                "yellow card",
                "offside",
                "var",
                "corner",
                "free kick",
                "foul",
                "substitution",
                "shot",
                "save",
                "referee",
                "header",
                "handball",
                "tackle",
                "booking",
                "whistle",
                "keeper",
                "striker",
                "counter attack",
                "extra time",
                "half time",
                "kick-off",
                "equaliser",
                "equalizer",
                "hat-trick",
                "crossbar",
            }
        ),
        "es": frozenset(
            {
                "gol",
                "golazo",
                "penalti",
                "penal",
                "tarjeta roja",
                "tarjeta amarilla",
                "fuera de juego",
                "offside",
                "córner",
                "corner",
                "saque de esquina",
                "tiro libre",
                "falta",
                "árbitro",
                "arbitro",
                "portero",
                "arquero",
                "cabezazo",
                "remate",
                "disparo",
                "atajada",
                "contraataque",
                "sustitución",
                "amonestación",
                "var",
                "travesaño",
                "poste",
                "empate",
            }
        ),
        "it": frozenset(
            {
                "gol",
                "rigore",
                "cartellino rosso",
                "cartellino giallo",
                "fuorigioco",
                "angolo",
                "punizione",
                "fallo",
                "sostituzione",
                "tiro",
                "parata",
                "arbitro",
                "colpo di testa",
                "mano",
                "ammonizione",
                "portiere",
                "contropiede",
                "traversa",
                "palo",
                "pareggio",
                "var",
            }
        ),
        "de": frozenset(
            {
                "tor",
                "elfmeter",
                "strafstoß",
                "rote karte",
                "gelbe karte",
                "abseits",
                "eckball",
                "ecke",
                "freistoß",
                "foul",
                "auswechslung",
                "schuss",
                "parade",
                "schiedsrichter",
                "kopfball",
                "handspiel",
                "verwarnung",
                "konter",
                "var",
            }
        ),
        "fr": frozenset(
            {
                "but",
                "penalty",
                "carton rouge",
                "carton jaune",
                "hors-jeu",
                "corner",
                "coup franc",
                "faute",
                "remplacement",
                "tir",
                "arrêt",
                "arbitre",
                "tête",
                "main",
                "avertissement",
                "gardien",
                "contre-attaque",
                "var",
            }
        ),
    }
)

_GLOSSARY: Final[tuple[dict[str, tuple[str, ...]], ...]] = (
    {"en": ("goal",), "es": ("gol",), "it": ("gol",), "de": ("Tor",), "fr": ("but",)},
    {
        "en": ("amazing goal", "great goal"),
        "es": ("golazo",),
        "it": ("golazo", "gran gol"),
        "de": ("Traumtor",),
        "fr": ("but magnifique",),
    },
    {
        "en": ("penalty", "penalty kick"),
        "es": ("penalti", "penal", "penalty"),
        "it": ("rigore",),
        "de": ("Elfmeter", "Strafstoß"),
        "fr": ("penalty", "pénalty"),
    },
    {"en": ("foul",), "es": ("falta",), "it": ("fallo",), "de": ("Foul",), "fr": ("faute",)},
    {
        "en": ("yellow card",),
        "es": ("tarjeta amarilla",),
        "it": ("cartellino giallo",),
        "de": ("gelbe Karte",),
        "fr": ("carton jaune",),
    },
    {
        "en": ("red card",),
        "es": ("tarjeta roja",),
        "it": ("cartellino rosso",),
        "de": ("rote Karte",),
        "fr": ("carton rouge",),
    },
    {
        "en": ("offside",),
        "es": ("fuera de juego", "offside"),
        "it": ("fuorigioco",),
        "de": ("Abseits",),
        "fr": ("hors-jeu",),
    },
    {
        "en": ("corner", "corner kick"),
        "es": ("córner", "saque de esquina", "corner"),
        "it": ("calcio d'angolo", "angolo"),
        "de": ("Eckball", "Ecke"),
        "fr": ("corner",),
    },
    {
        "en": ("free kick",),
        "es": ("tiro libre",),
        "it": ("punizione", "calcio di punizione"),
        "de": ("Freistoß",),
        "fr": ("coup franc",),
    },
    {
        "en": ("goalkeeper", "keeper"),
        "es": ("portero", "arquero"),
        "it": ("portiere",),
        "de": ("Torwart",),
        "fr": ("gardien",),
    },
    {
        "en": ("defender",),
        "es": ("defensor", "defensa"),
        "it": ("difensore",),
        "de": ("Verteidiger",),
        "fr": ("défenseur",),
    },
    {
        "en": ("forward", "striker"),
        "es": ("delantero",),
        "it": ("attaccante",),
        "de": ("Stürmer",),
        "fr": ("attaquant",),
    },
    {
        "en": ("midfielder",),
        "es": ("mediocampista", "centrocampista", "medio"),
        "it": ("centrocampista",),
        "de": ("Mittelfeldspieler",),
        "fr": ("milieu",),
    },
    {"en": ("cross",), "es": ("centro",), "it": ("cross",), "de": ("Flanke",), "fr": ("centre",)},
    {
        "en": ("shot",),
        "es": ("tiro", "remate", "disparo"),
        "it": ("tiro",),
        "de": ("Schuss",),
        "fr": ("tir",),
    },
    {
        "en": ("header",),
        "es": ("cabezazo",),
        "it": ("colpo di testa",),
        "de": ("Kopfball",),
        "fr": ("tête",),
    },
    {"en": ("pass",), "es": ("pase",), "it": ("passaggio",), "de": ("Pass",), "fr": ("passe",)},
    {"en": ("play",), "es": ("jugada",), "it": ("azione",), "de": ("Spielzug",), "fr": ("action",)},
    {"en": ("line",), "es": ("línea",), "it": ("linea",), "de": ("Linie",), "fr": ("ligne",)},
    {
        "en": ("counter attack", "counterattack"),
        "es": ("contraataque", "contra ataque"),
        "it": ("contropiede",),
        "de": ("Konter",),
        "fr": ("contre-attaque",),
    },
    {
        "en": ("extra time",),
        "es": ("tiempo extra", "prórroga"),
        "it": ("tempi supplementari",),
        "de": ("Verlängerung",),
        "fr": ("prolongation",),
    },
    {
        "en": ("half time", "halftime"),
        "es": ("medio tiempo", "descanso"),
        "it": ("intervallo",),
        "de": ("Halbzeit",),
        "fr": ("mi-temps",),
    },
    {"en": ("match",), "es": ("partido",), "it": ("partita",), "de": ("Spiel",), "fr": ("match",)},
    {
        "en": ("draw", "tie"),
        "es": ("empate",),
        "it": ("pareggio",),
        "de": ("Unentschieden",),
        "fr": ("match nul",),
    },
    {
        "en": ("victory", "win"),
        "es": ("victoria",),
        "it": ("vittoria",),
        "de": ("Sieg",),
        "fr": ("victoire",),
    },
    {
        "en": ("defeat",),
        "es": ("derrota",),
        "it": ("sconfitta",),
        "de": ("Niederlage",),
        "fr": ("défaite",),
    },
    {"en": ("attack",), "es": ("ataque",), "it": ("attacco",), "de": ("Angriff",), "fr": ("attaque",)},
    {
        "en": ("ball",),
        "es": ("balón", "pelota"),
        "it": ("pallone", "palla"),
        "de": ("Ball",),
        "fr": ("ballon",),
    },
    {
        "en": ("referee",),
        "es": ("árbitro", "arbitro"),
        "it": ("arbitro",),
        "de": ("Schiedsrichter",),
        "fr": ("arbitre",),
    },
    {
        "en": ("box", "penalty area"),
        "es": ("área",),
        "it": ("area",),
        "de": ("Strafraum",),
        "fr": ("surface",),
    },
    {
        "en": ("substitution",),
        "es": ("cambio", "sustitución"),
        "it": ("sostituzione",),
        "de": ("Auswechslung",),
        "fr": ("remplacement",),
    },
    {
        "en": ("save",),
        "es": ("atajada", "parada"),
        "it": ("parata",),
        "de": ("Parade",),
        "fr": ("arrêt",),
    },
    {
        "en": ("handball",),
        "es": ("mano",),
        "it": ("fallo di mano",),
        "de": ("Handspiel",),
        "fr": ("main",),
    },
    {
        "en": ("booking",),
        "es": ("amonestación",),
        "it": ("ammonizione",),
        "de": ("Verwarnung",),
        "fr": ("avertissement",),
    },
    {
        "en": ("whistle",),
        "es": ("silbato",),
        "it": ("fischio",),
        "de": ("Pfiff",),
        "fr": ("coup de sifflet",),
    },
    {
        "en": ("crossbar",),
        "es": ("travesaño",),
        "it": ("traversa",),
        "de": ("Latte",),
        "fr": ("barre transversale",),
    },
    {"en": ("post",), "es": ("poste",), "it": ("palo",), "de": ("Pfosten",), "fr": ("poteau",)},
)

_ELONGATION_RE: Final[re.Pattern[str]] = re.compile(r"(\w)\1+")


def collapse_elongation(text: str) -> str:
    """Squash repeated letters so "GOOOAL" and "gooool" compare like "goal"/"gol"."""
    return _ELONGATION_RE.sub(r"\1", text)


def normalize_language(code: Optional[str]) -> str:
    raw = (code or "").strip().lower()
    return raw.split("-")[0].split("_")[0]


def language_name(code: str) -> str:
    normalized = normalize_language(code)
    return LANGUAGE_NAMES.get(normalized, code)


def keywords_for(language: str) -> frozenset[str]:
    return KEYWORDS.get(normalize_language(language), frozenset())


def _build_phrase_table(source: str, target: str) -> Mapping[str, str]:
    table: dict[str, str] = {}
    for concept in _GLOSSARY:
        source_forms = concept.get(source, ())
        target_forms = concept.get(target, ())
        if not source_forms or not target_forms:
            continue
        for form in source_forms:
            # Earlier concepts win when one surface form appears twice.
            table.setdefault(form.lower(), target_forms[0])
    return MappingProxyType(table)


def _build_pattern(table: Mapping[str, str]) -> Optional[re.Pattern[str]]:
    if not table:
        return None
    # Longest phrases first so "tiro libre" wins over "tiro".
    ordered = sorted(table, key=len, reverse=True)
    alternation = "|".join(re.escape(key) for key in ordered)
    return re.compile(rf"(?<!\w)(?:{alternation})(?!\w)", re.IGNORECASE)


_PHRASE_TABLES: Final[Mapping[tuple[str, str], Mapping[str, str]]] = MappingProxyType(
    {pair: _build_phrase_table(*pair) for pair in permutations(SUPPORTED_LANGUAGES, 2)}
)
_PATTERNS: Final[Mapping[tuple[str, str], Optional[re.Pattern[str]]]] = MappingProxyType(
    {pair: _build_pattern(table) for pair, table in _PHRASE_TABLES.items()}
)


def phrase_table(source: str, target: str) -> Mapping[str, str]:
    pair = (normalize_language(source), normalize_language(target))
    return _PHRASE_TABLES.get(pair, MappingProxyType({}))


def translate_with_dictionary(text: str, source: str, target: str) -> str:
    """Whole-word, case-insensitive phrase substitution.

    Out-of-vocabulary tokens pass through lower-cased; the first letter of the
    result is capitalised. Raises ``ValueError`` when the text or either
    language code is missing.
    """
    src = normalize_language(source)
    tgt = normalize_language(target)
    if not src or not tgt:
        raise ValueError("dictionary translation requires source and target language codes")
    cleaned = " ".join((text or "").split())
    if not cleaned:
        raise ValueError("dictionary translation requires non-empty text")

    lowered = cleaned.lower()
    pattern = _PATTERNS.get((src, tgt))
    if pattern is not None:
        table = _PHRASE_TABLES[(src, tgt)]
        lowered = pattern.sub(lambda match: table.get(match.group(0).lower(), match.group(0)), lowered)
    return lowered[:1].upper() + lowered[1:]
