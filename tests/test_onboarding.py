import pytest

from conftest import FakeProvider, movie
from odyscape_rec.onboarding import get_onboarding_recommendations
from odyscape_rec.profile import UserPreferences


@pytest.mark.asyncio
async def test_no_preferences_returns_popular_page_truncated():
    provider = FakeProvider(popular=[movie(i) for i in range(30)])

    ids = await get_onboarding_recommendations(provider, UserPreferences())

    assert ids == list(range(20))
    assert provider.discover_calls == []


@pytest.mark.asyncio
async def test_explicitly_empty_preferences_also_use_popular():
    provider = FakeProvider(popular=[movie(1), movie(2)])

    ids = await get_onboarding_recommendations(provider, UserPreferences(genres=[], languages=[]))

    assert ids == [1, 2]


@pytest.mark.asyncio
async def test_genres_only_skips_combined_and_country_passes():
    provider = FakeProvider(discover=lambda f: [movie(i) for i in range(25)] + [movie(3)])

    ids = await get_onboarding_recommendations(provider, UserPreferences(genres=[28, 12]))

    assert len(provider.discover_calls) == 1
    filters = provider.discover_calls[0]
    assert filters.with_genres == [28, 12]
    assert filters.region is None
    assert filters.with_original_language is None
    assert ids == list(range(20))
    assert len(set(ids)) == len(ids)


@pytest.mark.asyncio
async def test_all_preferences_run_combined_query_first():
    provider = FakeProvider(discover=lambda f: [movie(i) for i in range(20)])

    ids = await get_onboarding_recommendations(
        provider, UserPreferences(genres=[18], languages=["ko", "en"], country="KR")
    )

    assert len(provider.discover_calls) == 1
    combined = provider.discover_calls[0]
    assert (combined.with_genres, combined.with_original_language, combined.region) == ([18], "ko", "KR")
    assert ids == list(range(20))


@pytest.mark.asyncio
async def test_short_passes_accumulate_in_order_without_duplicates():
    def discover(filters):
        if filters.with_genres and filters.region:
            return [movie(1), movie(2)]
        if filters.region:
            return [movie(2), movie(3)]
        return [movie(3), movie(4), movie(1)]

    provider = FakeProvider(discover=discover)

    ids = await get_onboarding_recommendations(
        provider, UserPreferences(genres=[35], languages=["fr"], country="FR")
    )

    assert ids == [1, 2, 3, 4]
    assert len(provider.discover_calls) == 3
    last = provider.discover_calls[2]
    assert (last.with_genres, last.with_original_language, last.region) == ([35], "fr", None)


@pytest.mark.asyncio
async def test_country_pass_stops_enrichment_once_enough():
    provider = FakeProvider(discover=lambda f: [movie(i) for i in range(15)])

    await get_onboarding_recommendations(provider, UserPreferences(languages=["ja"], country="JP"))

    # Country alone fills 15, so the language pass is skipped
    assert len(provider.discover_calls) == 1
    assert provider.discover_calls[0].region == "JP"


@pytest.mark.asyncio
async def test_failing_passes_fall_back_to_popular(provider_error):
    provider = FakeProvider(discover=lambda f: provider_error, popular=[movie(7), movie(8)])

    ids = await get_onboarding_recommendations(provider, UserPreferences(genres=[28], country="US"))

    assert ids == [7, 8]
    assert provider.popular_calls == 1


@pytest.mark.asyncio
async def test_popular_failure_returns_empty(provider_error):
    provider = FakeProvider(popular=provider_error)

    assert await get_onboarding_recommendations(provider, UserPreferences()) == []
