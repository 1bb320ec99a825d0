"""Tests for snapshot writing."""

import json
from datetime import datetime, timezone

from portfolio_sync.core.record import Article, Project, Snapshot
from portfolio_sync.core.snapshot import SnapshotWriter, utc_timestamp


def test_utc_timestamp_format():
    stamp = utc_timestamp(datetime(2024, 5, 1, 9, 30, 0, 123456, tzinfo=timezone.utc))
    assert stamp == "2024-05-01T09:30:00.123Z"


def test_snapshot_count_matches_records():
    records = [Article(id="a", title="A"), Article(id="b", title="B")]
    snapshot = Snapshot(list_key="articles", records=records, last_updated="now")
    data = snapshot.to_dict()
    assert data["count"] == len(data["articles"]) == 2
    assert list(data) == ["last_updated", "count", "articles"]


class TestSnapshotWriter:
    """Tests for SnapshotWriter."""

    def test_creates_directory_and_writes(self, tmp_path):
        writer = SnapshotWriter(tmp_path / "nested" / "data")
        snapshot = writer.build("projects", [Project(id="p1", title="مشروع", content_html="<p>x</p>")])

        path = writer.write("projects.json", snapshot)

        assert path == tmp_path / "nested" / "data" / "projects.json"
        raw = path.read_text(encoding="utf-8")
        assert "مشروع" in raw
        assert raw.startswith('{\n  "last_updated"')
        data = json.loads(raw)
        assert data["count"] == 1
        assert data["projects"][0]["id"] == "p1"
        assert data["projects"][0]["categories"] == []
        assert "content" not in data["projects"][0]

    def test_overwrites_previous_snapshot(self, tmp_path):
        writer = SnapshotWriter(tmp_path)
        writer.write("articles.json", writer.build("articles", [Article(id="gone", title="Old")]))
        writer.write("articles.json", writer.build("articles", []))

        data = json.loads((tmp_path / "articles.json").read_text(encoding="utf-8"))
        assert data == {"last_updated": data["last_updated"], "count": 0, "articles": []}
        assert [p.name for p in tmp_path.iterdir()] == ["articles.json"]

    def test_new_timestamp_each_run(self, tmp_path):
        writer = SnapshotWriter(tmp_path)
        first = writer.build("articles", [], now=datetime(2024, 1, 1, tzinfo=timezone.utc))
        second = writer.build("articles", [], now=datetime(2024, 1, 2, tzinfo=timezone.utc))
        assert first.last_updated != second.last_updated
