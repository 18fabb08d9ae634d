"""
Tests for MyAnimeList payload normalization.
"""

from datetime import UTC, datetime

import pytest

from lifehub.myanimelist.normalize import (
    normalize_history,
    normalize_seasonal,
    parse_episode,
    parse_id,
    parse_picture,
    parse_timestamp,
    season_for,
)


NOW = datetime(2024, 5, 10, 12, 0, tzinfo=UTC)


class TestFieldParsers:
    """Tests for individual field parsers."""

    @pytest.mark.parametrize(
        "value,expected",
        [(1, 1), ("42", 42), (7.0, 7), (None, None), ("abc", None), (True, None)],
    )
    def test_parse_id(self, value, expected):
        assert parse_id(value) == expected

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), "Infinity"])
    def test_parse_id_non_finite(self, value):
        assert parse_id(value) is None

    @pytest.mark.parametrize(
        "value,expected", [(3, 3), ("5", 5), (None, 1), (0, 1), (-2, 1), ("x", 1)]
    )
    def test_parse_episode(self, value, expected):
        assert parse_episode(value) == expected

    def test_parse_timestamp_z_suffix(self):
        parsed = parse_timestamp("2024-05-01T10:00:00Z", NOW)

        assert parsed == datetime(2024, 5, 1, 10, 0, tzinfo=UTC)

    def test_parse_timestamp_offset_normalized_to_utc(self):
        parsed = parse_timestamp("2024-05-01T12:00:00+02:00", NOW)

        assert parsed == datetime(2024, 5, 1, 10, 0, tzinfo=UTC)

    @pytest.mark.parametrize("value", [None, "", "yesterday", 12345])
    def test_parse_timestamp_fallback(self, value):
        assert parse_timestamp(value, NOW) == NOW

    def test_parse_picture_variants(self):
        assert parse_picture("https://img/a.jpg") == "https://img/a.jpg"
        assert parse_picture({"large": "https://img/l.jpg"}) == "https://img/l.jpg"
        assert (
            parse_picture({"medium": "https://img/m.jpg", "large": "https://img/l.jpg"})
            == "https://img/m.jpg"
        )
        assert parse_picture(None) is None
        assert parse_picture({}) is None


class TestNormalizeHistory:
    """Tests for flattening the history endpoint."""

    def test_node_variant(self):
        payload = {
            "history": [
                {
                    "node": {"id": 1, "title": "Frieren"},
                    "episode": 3,
                    "date": "2024-05-01T10:00:00Z",
                }
            ]
        }

        items = normalize_history(payload, NOW)

        assert len(items) == 1
        assert items[0].mal_id == 1
        assert items[0].episode == 3
        assert items[0].title == "Frieren"
        assert items[0].watched_at == datetime(2024, 5, 1, 10, 0, tzinfo=UTC)

    def test_alternate_field_names(self):
        """Test anime/increment/updated_at variant is understood."""
        payload = {
            "history": [
                {
                    "anime": {"id": "20"},
                    "increment": 7,
                    "updated_at": "2024-04-30T08:00:00Z",
                },
                {"entry": {"id": 30}, "episodes_watched": 2},
            ]
        }

        items = normalize_history(payload, NOW)

        assert [(i.mal_id, i.episode) for i in items] == [(20, 7), (30, 2)]
        assert items[1].watched_at == NOW
        assert items[0].title is None

    def test_malformed_entries_skipped(self):
        payload = {
            "history": [
                "garbage",
                {"node": "not-a-dict"},
                {"node": {"id": "NaN"}},
                {"node": {}},
                {"node": {"id": 5}},
            ]
        }

        items = normalize_history(payload, NOW)

        assert [i.mal_id for i in items] == [5]
        assert items[0].episode == 1

    @pytest.mark.parametrize("payload", [None, [], {}, {"history": "nope"}])
    def test_unexpected_shapes_give_empty(self, payload):
        assert normalize_history(payload, NOW) == []


class TestNormalizeSeasonal:
    """Tests for flattening the seasonal endpoint."""

    def test_data_with_nodes(self):
        payload = {
            "data": [
                {
                    "node": {
                        "id": 10,
                        "title": "Show",
                        "main_picture": {"medium": "https://img/m.jpg"},
                    }
                }
            ]
        }

        items = normalize_seasonal(payload, NOW)

        assert len(items) == 1
        assert items[0].mal_id == 10
        assert items[0].title == "Show"
        assert items[0].main_picture == "https://img/m.jpg"
        assert items[0].updated_at == NOW

    def test_anime_list_without_nodes(self):
        payload = {"anime": [{"id": 11, "title": "Flat"}, {"title": "no id"}]}

        items = normalize_seasonal(payload, NOW)

        assert [i.mal_id for i in items] == [11]


class TestSeasonFor:
    @pytest.mark.parametrize(
        "month,season",
        [
            (1, "winter"),
            (3, "winter"),
            (4, "spring"),
            (6, "spring"),
            (7, "summer"),
            (9, "summer"),
            (10, "fall"),
            (12, "fall"),
        ],
    )
    def test_month_to_season(self, month, season):
        assert season_for(datetime(2024, month, 15, tzinfo=UTC)) == (2024, season)
