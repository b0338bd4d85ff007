"""
Tests for prompt construction.
"""
from evanote.prompts import SOAP_SYSTEM_DE, SOAP_SYSTEM_FR, build_prompts


def test_german_is_default_and_auto():
    for language in ("de", "auto", None, "xx"):
        prompts = build_prompts(language, "Knie rechts schmerzt seit Tagen.")
        assert prompts.system == SOAP_SYSTEM_DE
        assert '"N/A"' in prompts.system


def test_french_prompts():
    prompts = build_prompts("fr", "Douleur au genou droit depuis hier.", detail="concise")
    assert prompts.system == SOAP_SYSTEM_FR
    assert '"N/D"' in prompts.system
    assert "moyen (uniquement les points essentiels)" in prompts.user


def test_user_prompt_embeds_text_verbatim():
    text = "Der Patient klagt über {geschweifte} Klammern."
    prompts = build_prompts("de", text)
    assert f'"""\n{text}\n"""' in prompts.user
    assert "hoch (bitte Messwerte/Tests/Scores aufnehmen)" in prompts.user


def test_body_region_line():
    with_region = build_prompts("de", "Text des Transkripts hier.", body_region="Knie rechts")
    assert "- Fokusregion: Knie rechts" in with_region.user

    without_region = build_prompts("de", "Text des Transkripts hier.")
    assert "Fokusregion" not in without_region.user


def test_prompts_ask_for_the_four_fields():
    for language in ("de", "fr"):
        prompts = build_prompts(language, "x" * 30)
        for field in ("subjective", "objective", "assessment", "plan"):
            assert field in prompts.system
            assert field in prompts.user
