import pytest

from odyscape_rec.profile import UserPreferences, level_for_experience


@pytest.mark.parametrize(
    "xp, level",
    [
        (0, "Beginner"),
        (50, "Beginner"),
        (51, "Explorer"),
        (150, "Explorer"),
        (151, "Cinephile"),
        (300, "Cinephile"),
        (301, "Connoisseur"),
        (5000, "Connoisseur"),
    ],
)
def test_level_for_experience_thresholds(xp, level):
    assert level_for_experience(xp) == level


def test_preferences_normalize_and_dedupe():
    prefs = UserPreferences(genres=[28, 12, 28], languages=["EN", " ko ", "en", ""], country=" fr ")

    assert prefs.genres == [28, 12]
    assert prefs.languages == ["en", "ko"]
    assert prefs.country == "FR"
    assert prefs.first_language == "en"
    assert prefs.has_any is True


def test_preferences_absent_fields_are_not_empty_selections():
    prefs = UserPreferences()

    assert prefs.genres is None
    assert prefs.languages is None
    assert prefs.country is None
    assert prefs.has_any is False
    assert prefs.first_language is None


def test_preferences_round_trip_through_stored_blob():
    prefs = UserPreferences(genres=[18], languages=["ja"], favorite_movies=[603], country="JP")

    restored = UserPreferences.from_dict(prefs.to_dict())

    assert restored == prefs


def test_preferences_from_partial_blob():
    # Rows saved without a country carry an empty string
    restored = UserPreferences.from_dict({"genres": [35], "country": ""})

    assert restored.genres == [35]
    assert restored.languages is None
    assert restored.country is None
    assert restored.favorite_movies == []
    assert UserPreferences.from_dict(None) == UserPreferences()
