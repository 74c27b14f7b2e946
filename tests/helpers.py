"""Builders shared by the test modules."""

from datetime import datetime, timedelta, timezone

from newsradar.analysis.types import ClusteredEvent, RawItem

# Wednesday 6 March 2024, 12:00 UTC
NOW = datetime(2024, 3, 6, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: float = NOW.timestamp()) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_item(source: str, title: str, minutes_ago: float = 0, link: str = "") -> RawItem:
    return RawItem(
        source=source,
        title=title,
        link=link or f"https://example.com/{source.lower()}/{'-'.join(title.lower().split())}",
        published_at=NOW - timedelta(minutes=minutes_ago),
    )


def make_cluster(
    cluster_id: str,
    title: str,
    sources: list[str],
    span_minutes: float = 0,
) -> ClusteredEvent:
    """Cluster whose items are spread evenly over ``span_minutes`` ending at NOW."""
    count = len(sources)
    items = []
    for i, source in enumerate(sources):
        offset = span_minutes * (count - 1 - i) / (count - 1) if count > 1 else 0
        items.append(make_item(source, f"{title} ({i})", minutes_ago=offset))
    return ClusteredEvent(
        id=cluster_id,
        primary_title=title,
        primary_source=sources[0],
        source_count=len(set(sources)),
        top_sources=list(dict.fromkeys(sources))[:5],
        first_seen=min(i.published_at for i in items),
        last_updated=max(i.published_at for i in items),
        all_items=items,
    )


IRAN_HEADLINES = [
    ("Reuters", "Pressure rises as Iran sanctions debate grows"),
    ("AP", "Washington intensifies Iran sanctions push"),
    ("BBC", "Fresh concerns over Iran sanctions impact"),
    ("Reuters", "Regional response to Iran sanctions package"),
    ("AP", "New momentum behind Iran sanctions proposal"),
    ("BBC", "Timeline shortens for Iran sanctions after warnings"),
]
