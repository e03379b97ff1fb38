"""
Parser Constants.

Phrase sets and compiled patterns used by the deterministic matchers. All
patterns run against locale-normalized text (lowercase, no diacritics, no
punctuation, single spaces), see deterministic.normalize_utterance.
"""

import re


# =============================================================================
# Confirmation Phrases
# =============================================================================
# Short affirmatives said in reply to "¿Confirmo tu pedido?". Matched against
# the WHOLE utterance only, so "si" inside "si, y también chorizo" never counts.

CONFIRMATION_WORDS = [
    "si",
    "sip",
    "dale",
    "ok",
    "okay",
    "okey",
    "vale",
    "claro",
    "perfecto",
    "adelante",
    "confirmo",
    "confirmar",
    "confirma",
    "confirmado",
    "correcto",
    "venga",
    "de acuerdo",
    "por supuesto",
    "esta bien",
    "asi esta bien",
    "todo bien",
    "hazlo",
    "yes",
]

CONFIRMATION_PATTERN = re.compile(
    r"^(?:(?:" + "|".join(re.escape(w) for w in CONFIRMATION_WORDS) + r")\s*)+"
    r"(?:por favor|gracias)?$"
)


# =============================================================================
# Finalization Phrases
# =============================================================================
# The customer is done adding items. Unambiguous multi-word phrases may appear
# anywhere in the utterance ("vale, eso es todo gracias"); short or ambiguous
# ones must be the whole utterance ("cuanto es" alone, but not
# "cuanto es el kilo de solomillo").

FINALIZATION_SUBSTRINGS = [
    "eso es todo",
    "eso seria todo",
    "eso sera todo",
    "seria todo",
    "nada mas",
    "nada mas gracias",
    "cuanto es todo",
    "cuanto es en total",
    "cuanto seria en total",
    "cuanto le debo",
    "cuanto te debo",
    "cuanto es el total",
    "quiero pagar",
    "voy a pagar",
    "ya termine",
    "he terminado",
    "cerrar el pedido",
    "cerrar pedido",
    "finalizar pedido",
    "finalizar el pedido",
    "confirmar pedido",
    "confirmar el pedido",
    "con eso es suficiente",
    "con eso basta",
]

FINALIZATION_EXACT = [
    "listo",
    "ya",
    "ya esta",
    "es todo",
    "eso",
    "nada",
    "nada mas",
    "cuanto es",
    "cuanto seria",
    "la cuenta",
    "terminar",
    "finalizar",
]

FINALIZATION_SUBSTRING_PATTERN = re.compile(
    r"\b(?:" + "|".join(re.escape(p) for p in FINALIZATION_SUBSTRINGS) + r")\b"
)

FINALIZATION_EXACT_PATTERN = re.compile(
    r"^(?:" + "|".join(re.escape(p) for p in FINALIZATION_EXACT) + r")(?: gracias)?$"
)


# =============================================================================
# Quantities
# =============================================================================
# Everything is normalized to kilograms.

WORD_QUANTITIES_KG = {
    "medio kilo": "0.5",
    "un kilo": "1",
    "kilo": "1",
    "un cuarto de kilo": "0.25",
    "cuarto de kilo": "0.25",
    "un cuarto": "0.25",
    "tres cuartos de kilo": "0.75",
    "kilo y medio": "1.5",
    "un kilo y medio": "1.5",
}

QUANTITY_PATTERN = re.compile(
    r"^\s*(\d+(?:[.,]\d+)?)\s*"
    r"(kg|kgs|kilo|kilos|kilogramo|kilogramos|g|gr|grs|gramo|gramos)?\.?\s*$",
    re.IGNORECASE,
)

GRAM_UNITS = frozenset({"g", "gr", "grs", "gramo", "gramos"})
