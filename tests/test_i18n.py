from app.staffing.i18n import MESSAGES, translate


def test_plain_message_with_params():
    assert translate("user_angeltype.join.success", angeltype="Engel") == "You joined Engel."


def test_plural_picks_form_by_count():
    assert translate("angeltypes.unconfirmed_hint", count=1) == "There is 1 unconfirmed angeltype."
    assert translate("angeltypes.unconfirmed_hint", count=3) == "There are 3 unconfirmed angeltypes."
    assert translate("angeltypes.unconfirmed_hint", count=2, locale="de_DE") == "Es gibt 2 unbestätigte Engeltypen."


def test_explicit_locale():
    assert translate("email.greeting", locale="de_DE", name="alice") == "Hallo alice,"


def test_missing_translation_falls_back_to_english():
    assert "settings.oauth" not in MESSAGES["de_DE"]
    assert translate("settings.oauth", locale="de_DE") == "OAuth"


def test_unknown_key_returns_key():
    assert translate("no.such.message") == "no.such.message"


def test_unknown_locale_falls_back():
    assert translate("form.yes", locale="xx_XX") == "Yes"


def test_every_german_message_has_english_source():
    assert set(MESSAGES["de_DE"]) <= set(MESSAGES["en_US"])
