"""
Prompt templates for SOAP generation.

German is the default language, French the alternate. "auto" resolves to German.
"""
from dataclasses import dataclass
from typing import Optional

SUPPORTED_LANGUAGES = ("de", "fr", "auto")
DETAIL_LEVELS = ("concise", "detailed")

SOAP_SYSTEM_DE = """Du bist ein klinischer Assistent für Physiotherapie auf Deutsch.
Erzeuge eine **detaillierte SOAP-Notiz** aus Transkript oder Freitext.

REGELN:
- **Sprache**: Deutsch.
- **Nichts erfinden**: Fehlende Information = "N/A".
- **Struktur & Format**: Ausgabe ausschließlich als JSON {subjective, objective, assessment, plan}.
- **Stil**: klinisch, präzise, kurze Sätze, Stichpunkte erlaubt.
- **Ziele**: nach Möglichkeit SMART (konkret, messbar, terminierbar).

ANFORDERUNGEN:
- SUBJEKTIV: Hauptbeschwerden, Schmerzskala (NRS/VAS 0–10), Verlauf, Red Flags (falls erwähnt).
- OBJEKTIV: Messwerte (ROM in Grad °), Kraftgrade (0–5), relevante Tests (z. B. Lasègue, Hawkins-Kennedy), Beobachtungen.
- ASSESSMENT: Klinische Einschätzung, Hypothesen, Irritabilität (niedrig/mittel/hoch), Fortschritt seit letzter Sitzung (falls vorhanden).
- PLAN: Interventionen (mit Dosierung/Frequenz), HEP, Ziele nach SMART, nächste Schritte/Termine.

WICHTIG:
- Wenn eine Information fehlt, schreibe "N/A" statt etwas zu erfinden.
- Die Ausgabe muss valides JSON sein mit genau diesen 4 Feldern: subjective, objective, assessment, plan.
- Bleibe objektiv und klinisch. Keine persönlichen Meinungen oder Spekulationen."""

SOAP_SYSTEM_FR = """Tu es un assistant clinique pour la kinésithérapie en français.
Génère une **note SOAP détaillée** à partir d'une transcription ou d'un texte libre.

RÈGLES :
- **Langue** : Français.
- **Ne rien inventer** : Information manquante = "N/D" (non disponible).
- **Structure & Format** : Sortie uniquement en JSON {subjective, objective, assessment, plan}.
- **Style** : clinique, précis, phrases courtes, puces autorisées.
- **Objectifs** : si possible SMART (spécifiques, mesurables, atteignables, réalistes, temporellement définis).

EXIGENCES :
- SUBJECTIF : Plaintes principales, échelle de douleur (EVA/EN 0–10), évolution, drapeaux rouges (si mentionnés).
- OBJECTIF : Mesures (amplitude articulaire en degrés °), force musculaire (0–5), tests pertinents (ex. Lasègue, Hawkins-Kennedy), observations.
- ÉVALUATION : Appréciation clinique, hypothèses, irritabilité (faible/moyenne/élevée), progrès depuis la dernière séance (si disponible).
- PLAN : Interventions (avec dosage/fréquence), programme d'exercices à domicile (PED), objectifs SMART, prochaines étapes/rendez-vous.

IMPORTANT :
- Si une information manque, écrivez "N/D" au lieu d'inventer.
- La sortie doit être un JSON valide avec exactement ces 4 champs : subjective, objective, assessment, plan.
- Restez objectif et clinique. Pas d'opinions personnelles ou de spéculations."""

_USER_TEMPLATE_DE = '''KONTEXT:
- Detailtiefe: {detail}
{region}

TRANSKRIPTION/NOTIZEN:
"""
{text}
"""

HINWEIS:
- System-Regeln gelten (Deutsch, nichts erfinden → "N/A", Ausgabe nur JSON).
- Die Ausgabe muss ein valides JSON-Objekt sein: {{"subjective": "...", "objective": "...", "assessment": "...", "plan": "..."}}'''

_USER_TEMPLATE_FR = '''CONTEXTE :
- Niveau de détail : {detail}
{region}

TRANSCRIPTION/NOTES :
"""
{text}
"""

REMARQUE :
- Les règles système s'appliquent (Français, ne rien inventer → "N/D", sortie JSON uniquement).
- La sortie doit être un objet JSON valide : {{"subjective": "...", "objective": "...", "assessment": "...", "plan": "..."}}'''

_DETAIL_DE = {
    "detailed": "hoch (bitte Messwerte/Tests/Scores aufnehmen)",
    "concise": "mittel (nur Kernaussagen)",
}
_DETAIL_FR = {
    "detailed": "élevé (inclure les mesures/tests/scores)",
    "concise": "moyen (uniquement les points essentiels)",
}

# Placeholder the model is told to use for missing information.
PLACEHOLDERS = {"de": "N/A", "fr": "N/D"}


@dataclass(frozen=True)
class PromptPair:
    system: str
    user: str


def resolve_language(language: Optional[str]) -> str:
    return "fr" if language == "fr" else "de"


def get_system_prompt(language: Optional[str]) -> str:
    if resolve_language(language) == "fr":
        return SOAP_SYSTEM_FR
    return SOAP_SYSTEM_DE


def create_user_prompt(
    language: Optional[str],
    cleaned_text: str,
    detail: str = "detailed",
    body_region: Optional[str] = None,
) -> str:
    """
    Fill the user template for the given language.

    The region line is left blank when no body region is given.
    Unknown detail levels fall back to "detailed".
    """
    if resolve_language(language) == "fr":
        template, details, region_label = _USER_TEMPLATE_FR, _DETAIL_FR, "- Région ciblée : "
    else:
        template, details, region_label = _USER_TEMPLATE_DE, _DETAIL_DE, "- Fokusregion: "

    region = f"{region_label}{body_region}" if body_region else ""
    return template.format(
        detail=details.get(detail, details["detailed"]),
        region=region,
        text=cleaned_text,
    )


def build_prompts(
    language: Optional[str],
    cleaned_text: str,
    detail: str = "detailed",
    body_region: Optional[str] = None,
) -> PromptPair:
    """
    Build the (system, user) prompt pair for one generation request.

    Args:
        language: "de", "fr" or "auto" ("auto" and anything unknown mean German)
        cleaned_text: Output of clean_transcript, embedded verbatim
        detail: "concise" or "detailed"
        body_region: Optional focus region, e.g. "Knie rechts"

    Returns:
        PromptPair
    """
    return PromptPair(
        system=get_system_prompt(language),
        user=create_user_prompt(language, cleaned_text, detail, body_region),
    )
