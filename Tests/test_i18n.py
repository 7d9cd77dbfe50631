# Tests/test_i18n.py
from Services.i18n import TRANSLATIONS, Translator, normalize_language


def test_missing_key_returns_key():
    assert Translator("en").t("nonexistent.key") == "nonexistent.key"
    assert Translator("am")("nonexistent.key") == "nonexistent.key"


def test_lookup_per_language():
    translator = Translator("en")
    assert translator.t("inventory.errors.load") == "Failed to load vehicles. Please try again later."
    translator.set_language("am")
    assert translator.t("nav.home") == TRANSLATIONS["am"]["nav.home"]


def test_unknown_language_uses_default():
    assert normalize_language("fr") == "en"
    assert normalize_language(None) == "en"
    assert Translator("xx").language == "en"

