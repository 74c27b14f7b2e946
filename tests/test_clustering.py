from datetime import timedelta

from helpers import NOW, make_item
from newsradar.analysis.clustering import (
    ClusterEngine,
    cluster_items,
    normalize_words,
    overlap_similarity,
)


def test_normalize_words_drops_short_words_and_punctuation():
    assert normalize_words("Fed's rate hike: what it means for U.S. banks") == frozenset(
        {"feds", "rate", "hike", "what", "means", "banks"}
    )


def test_overlap_is_relative_to_smaller_set():
    a = frozenset({"raises", "interest", "rates"})
    b = frozenset({"federal", "reserve", "raises", "interest", "rates"})
    assert overlap_similarity(a, b) == 1.0
    assert overlap_similarity(a, frozenset()) == 0.0


def test_similar_headlines_share_a_cluster():
    items = [
        make_item("BBC", "Federal Reserve raises interest rates quarter point", 20),
        make_item("Reuters", "Fed raises interest rates by quarter point", 10),
        make_item("Local Herald", "Storm floods coastal towns overnight", 5),
    ]

    clusters = cluster_items(items)

    assert len(clusters) == 2
    fed, storm = clusters
    assert len(fed.all_items) == 2
    # Tier-1 publisher becomes the primary
    assert fed.primary_source == "Reuters"
    assert fed.primary_title == "Fed raises interest rates by quarter point"
    assert fed.top_sources == ["Reuters", "BBC"]
    assert fed.source_count == 2
    assert fed.first_seen == NOW - timedelta(minutes=20)
    assert fed.last_updated == NOW - timedelta(minutes=10)
    assert storm.primary_source == "Local Herald"


def test_single_item_cluster_gets_velocity():
    clusters = cluster_items([make_item("AP", "Missile strike hits port city")])

    (cluster,) = clusters
    assert cluster.is_alert is True
    assert cluster.velocity is not None
    assert cluster.velocity.sources_per_hour == 0
    assert cluster.velocity.level == "normal"


def test_headline_joins_first_matching_cluster_in_creation_order():
    items = [
        make_item("AP", "Oil tanker seized near strait"),
        make_item("BBC", "Oil tanker seized near strait of Hormuz"),
        make_item("CNN", "Oil tanker seized"),
    ]
    clusters = cluster_items(items)
    assert len(clusters) == 1
    assert len(clusters[0].all_items) == 3


def test_malformed_items_are_skipped():
    items = [
        {"source": "AP", "title": "Earthquake shakes capital", "published_at": NOW.isoformat()},
        {"source": "AP", "title": "   ", "published_at": NOW.isoformat()},
        {"title": "No source at all"},
        "not a mapping",
    ]
    clusters = ClusterEngine().cluster(items)
    assert [c.primary_title for c in clusters] == ["Earthquake shakes capital"]


def test_headlines_without_long_words_are_skipped():
    items = [
        make_item("Reuters", "Oil up 2%"),
        make_item("AP", "Oil up 2%"),
        make_item("BBC", "Oil prices climb on supply worries"),
    ]
    assert cluster_items(items[:2]) == []

    clusters = cluster_items(items)
    assert [(c.primary_title, len(c.all_items)) for c in clusters] == [
        ("Oil prices climb on supply worries", 1)
    ]


def test_duplicate_seeds_get_distinct_ids():
    item = make_item("AP", "Earthquake shakes capital", link="https://x.test/1")
    other = make_item("BBC", "Parliament votes on budget", link="https://x.test/2")
    engine = ClusterEngine(similarity_threshold=1.0)
    clusters = engine.cluster([item, other, item])
    ids = [c.id for c in clusters]
    assert len(ids) == len(set(ids)) == 3
    assert ids[2] == f"{ids[0]}-2"


def test_custom_source_tiers_change_primary():
    items = [
        make_item("Reuters", "Central bank holds benchmark rate steady"),
        make_item("Niche Wire", "Central bank holds benchmark rate steady again"),
    ]
    (cluster,) = cluster_items(items, source_tiers={"Niche Wire": 1, "Reuters": 3})
    assert cluster.primary_source == "Niche Wire"
