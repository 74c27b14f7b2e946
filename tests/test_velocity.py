import pytest

from helpers import make_cluster
from newsradar.analysis.velocity import (
    analyze_sentiment,
    calculate_velocity,
    calculate_velocity_with_classifier,
    enrich_with_velocity,
    enrich_with_velocity_classifier,
    get_velocity_level,
)


def test_sentiment_lexicon():
    assert analyze_sentiment("Missile strike kills dozens as war fears grow") == (
        "negative",
        -4,
    )
    assert analyze_sentiment("Ceasefire deal brings peace breakthrough") == ("positive", 4)
    # one hit on each side of zero stays neutral
    assert analyze_sentiment("Talks collapse") == ("neutral", -1)
    assert analyze_sentiment("Stocks surge") == ("neutral", 0)


@pytest.mark.parametrize(
    "rate,level",
    [(0, "normal"), (2.9, "normal"), (3, "elevated"), (5.9, "elevated"), (6, "spike")],
)
def test_velocity_levels(rate, level):
    assert get_velocity_level(rate) == level


def test_burst_is_a_spike():
    cluster = make_cluster(
        "c1", "Explosion reported at refinery", ["AP", "BBC", "CNN", "NPR", "AFP", "WSJ"], 30
    )
    velocity = calculate_velocity(cluster)
    assert velocity.sources_per_hour == 12.0
    assert velocity.level == "spike"
    assert velocity.trend == "stable"
    assert velocity.sentiment == "negative"


def test_short_span_is_floored_at_quarter_hour():
    cluster = make_cluster("c1", "Quiet headline", ["AP", "BBC"], 0)
    assert calculate_velocity(cluster).sources_per_hour == 8.0


def test_rising_and_falling_trends():
    rising = make_cluster("c1", "Market update", ["AP", "BBC", "CNN", "NPR"], 60)
    # keep only the oldest item far back
    items = rising.all_items
    items[1] = items[1].model_copy(update={"published_at": items[3].published_at})
    items[2] = items[2].model_copy(update={"published_at": items[3].published_at})
    assert calculate_velocity(rising).trend == "rising"

    falling = make_cluster("c2", "Market update", ["AP", "BBC", "CNN", "NPR"], 60)
    items = falling.all_items
    items[1] = items[1].model_copy(update={"published_at": items[0].published_at})
    items[2] = items[2].model_copy(update={"published_at": items[0].published_at})
    assert calculate_velocity(falling).trend == "falling"


def test_enrich_returns_copies():
    clusters = [make_cluster("c1", "Market update", ["AP", "BBC"], 60)]
    enriched = enrich_with_velocity(clusters)
    assert clusters[0].velocity is None
    assert enriched[0].velocity.sources_per_hour == 2.0


@pytest.mark.asyncio
async def test_classifier_overrides_sentiment():
    async def classifier(titles):
        return [{"label": "NEGATIVE", "score": 0.9} for _ in titles]

    clusters = [
        make_cluster("c1", "Ceasefire deal agreed", ["AP", "BBC"], 30),
        make_cluster("c2", "Peace treaty signed", ["AP"], 0),
    ]
    enriched = await enrich_with_velocity_classifier(clusters, classifier)
    assert [c.velocity.sentiment for c in enriched] == ["negative", "negative"]
    assert enriched[0].velocity.sentiment_score == -0.9

    single = await calculate_velocity_with_classifier(clusters[0], classifier)
    assert single.sentiment == "negative"


@pytest.mark.asyncio
async def test_classifier_failure_falls_back_to_lexicon():
    async def broken(titles):
        raise RuntimeError("model offline")

    cluster = make_cluster("c1", "Ceasefire deal brings peace breakthrough", ["AP", "BBC"], 30)
    (enriched,) = await enrich_with_velocity_classifier([cluster], broken)
    assert enriched.velocity.sentiment == "positive"

    velocity = await calculate_velocity_with_classifier(cluster, broken)
    assert velocity.sentiment == "positive"


@pytest.mark.asyncio
async def test_malformed_classifier_results_fall_back_per_cluster():
    async def sloppy(titles):
        return [
            {"label": "positive", "score": "high"},
            None,
            {"label": "negative", "score": None},
            {"label": "mixed", "score": 0.4},
            {"label": "negative", "score": 0.7},
        ]

    title = "Ceasefire deal brings peace breakthrough"
    clusters = [make_cluster(f"c{i}", title, ["AP", "BBC"], 30) for i in range(5)]
    enriched = await enrich_with_velocity_classifier(clusters, sloppy)

    assert [c.velocity.sentiment for c in enriched] == [
        "positive", "positive", "positive", "positive", "negative",
    ]
    assert enriched[0].velocity == calculate_velocity(clusters[0])

    async def bad_score(titles):
        return [{"label": "positive", "score": "high"}]

    velocity = await calculate_velocity_with_classifier(clusters[0], bad_score)
    assert velocity == calculate_velocity(clusters[0])


def test_velocity_is_a_pure_function_of_the_cluster():
    cluster = make_cluster("c1", "Talks collapse as war fears grow", ["AP", "BBC", "CNN"], 45)
    assert calculate_velocity(cluster) == calculate_velocity(cluster)
