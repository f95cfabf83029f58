"""Tests for keyset pagination: tie-break filters, direction inversion and cursors."""

import pytest

from scoped_search.errors import InvalidArgumentError
from scoped_search.pagination.keyset import (
    MAX_SORT_SENTINEL,
    MIN_SORT_SENTINEL,
    Cursor,
    KeysetPaginator,
    SortSpec,
    cursor_for,
    decode_sort_value,
)
from scoped_search.query.document import QueryDocument


def filters_of(body):
    return body["query"]["bool"].get("filter", [])


class TestTieBreakFilter:
    """Test the range clauses added for a bound."""

    def test_ascending_after(self):
        """Bound after a created_at/id pair on an ascending sort."""
        paginator = KeysetPaginator(None, [{"created_at": "asc"}], tie_breaker="id")

        body = paginator.after("2025-01-01", 1).first(10)

        assert filters_of(body) == [{"bool": {"should": [
            {"range": {"created_at": {"gt": "2025-01-01"}}},
            {"bool": {"must": [
                {"term": {"created_at": "2025-01-01"}},
                {"range": {"id": {"gt": 1}}},
            ]}},
        ]}}]
        assert body["sort"] == [{"created_at": "asc"}, {"id": "asc"}]
        assert body["size"] == 10

    @pytest.mark.parametrize("direction,side,op", [
        ("asc", "after", "gt"),
        ("asc", "before", "lt"),
        ("desc", "after", "lt"),
        ("desc", "before", "gt"),
    ])
    def test_operator_per_direction_and_side(self, direction, side, op):
        """Direction and bound side jointly select the range operator."""
        paginator = KeysetPaginator(None, [{"created_at": direction}], tie_breaker="id")
        getattr(paginator, side)("2025-01-01", 5)

        should = filters_of(paginator.first(3))[0]["bool"]["should"]

        assert should[0] == {"range": {"created_at": {op: "2025-01-01"}}}
        assert should[1]["bool"]["must"][1] == {"range": {"id": {op: 5}}}

    def test_tie_breaker_keeps_declared_direction(self):
        """A tie-breaker sorted opposite to the primary uses its own operator."""
        paginator = KeysetPaginator(None, [{"created_at": "desc"}, {"id": "asc"}], tie_breaker="id")

        should = filters_of(paginator.after("2025-01-01", 5).first(3))[0]["bool"]["should"]

        assert should[0] == {"range": {"created_at": {"lt": "2025-01-01"}}}
        assert should[1]["bool"]["must"][1] == {"range": {"id": {"gt": 5}}}

    def test_no_bound_adds_no_filter(self):
        body = KeysetPaginator(None, [{"created_at": "asc"}]).first(5)

        assert filters_of(body) == []
        assert body["sort"] == [{"created_at": "asc"}, {"id": "asc"}]


class TestNullableFields:
    """Test handling of sort fields that may be missing."""

    def test_after_on_nullable_field_reaches_missing_values(self):
        paginator = KeysetPaginator(None, [{"due_date": "asc"}], nullable_fields=["due_date"])

        should = filters_of(paginator.after("2025-02-01", 4).first(5))[0]["bool"]["should"]

        assert len(should) == 3
        assert should[2] == {"bool": {"must_not": {"exists": {"field": "due_date"}}}}

    def test_before_on_nullable_field_omits_missing_disjunct(self):
        paginator = KeysetPaginator(None, [{"due_date": "asc"}], nullable_fields=["due_date"])

        should = filters_of(paginator.before("2025-02-01", 4).first(5))[0]["bool"]["should"]

        assert len(should) == 2

    def test_non_nullable_field_has_no_missing_disjunct(self):
        paginator = KeysetPaginator(None, [{"due_date": "asc"}])

        should = filters_of(paginator.after("2025-02-01", 4).first(5))[0]["bool"]["should"]

        assert len(should) == 2

    def test_null_primary_collapses_to_tie_breaker(self):
        """With a null primary only the tie-breaker orders the missing values."""
        paginator = KeysetPaginator(None, [{"due_date": "asc"}], nullable_fields=["due_date"])

        body = paginator.after(None, 4).first(5)

        assert filters_of(body) == [{"bool": {"must": [
            {"bool": {"must_not": {"exists": {"field": "due_date"}}}},
            {"range": {"id": {"gt": 4}}},
        ]}}]

    def test_null_primary_collapses_on_both_sides(self):
        paginator = KeysetPaginator(None, [{"due_date": "asc"}], nullable_fields=["due_date"])

        body = paginator.before(None, 4).first(5)

        assert filters_of(body) == [{"bool": {"must": [
            {"bool": {"must_not": {"exists": {"field": "due_date"}}}},
            {"range": {"id": {"lt": 4}}},
        ]}}]


class TestDirectionInversion:
    """Test last(n) against first(n)."""

    def test_last_flips_sort_but_keeps_filter(self):
        first = KeysetPaginator(None, [{"created_at": "asc"}]).after("2025-01-01", 1).first(10)
        last = KeysetPaginator(None, [{"created_at": "asc"}]).after("2025-01-01", 1).last(10)

        assert last["sort"] == [{"created_at": "desc"}, {"id": "desc"}]
        assert filters_of(last) == filters_of(first)
        assert last["size"] == first["size"]

    def test_last_flips_every_declared_field(self):
        sort = [{"weight": "asc"}, {"created_at": "desc"}, {"id": "asc"}]

        body = KeysetPaginator(None, sort).last(5)

        assert body["sort"] == [{"weight": "desc"}, {"created_at": "asc"}, {"id": "desc"}]

    def test_negative_size_rejected(self):
        with pytest.raises(InvalidArgumentError):
            KeysetPaginator(None, [{"created_at": "asc"}]).first(-1)


class TestWrappedDocument:
    """Test that pagination composes with a built query."""

    def test_existing_filters_are_kept_and_input_untouched(self):
        document = QueryDocument()
        document.add_filter({"term": {"state": "opened"}})
        document["size"] = 99
        document["sort"] = [{"updated_at": "desc"}]

        body = KeysetPaginator(document, [{"created_at": "asc"}]).after("2025-01-01", 1).first(10)

        assert filters_of(body)[0] == {"term": {"state": "opened"}}
        assert len(filters_of(body)) == 2
        assert body["size"] == 10
        assert document["size"] == 99
        assert document.filters == [{"term": {"state": "opened"}}]

    def test_accepts_wire_format_dict(self):
        body = {"query": {"bool": {"must": [{"match_all": {}}]}}, "track_scores": True}

        page = KeysetPaginator(body, [{"created_at": "desc"}]).first(2)

        assert page["query"]["bool"]["must"] == [{"match_all": {}}]
        assert page["track_scores"] is True

    def test_repeated_pages_do_not_accumulate_bounds(self):
        paginator = KeysetPaginator(None, [{"created_at": "asc"}])
        paginator.after("2025-01-01", 1).first(10)

        body = paginator.after("2025-02-01", 2).first(10)

        assert len(filters_of(body)) == 1


class TestSortSpec:
    """Test tie-breaker resolution."""

    def test_tie_breaker_appended_with_primary_direction(self):
        spec = SortSpec.from_sort([{"created_at": "desc"}], tie_breaker="id")

        assert spec.tie_breaker == ("id", "desc")

    def test_unknown_tie_breaker_falls_back_to_second_field(self):
        spec = SortSpec.from_sort([{"created_at": "asc"}, {"iid": "desc"}], tie_breaker="id")

        assert spec.tie_breaker == ("iid", "desc")

    def test_single_mapping_with_order_options(self):
        spec = SortSpec.from_sort({"weight": {"order": "DESC"}, "id": "asc"})

        assert spec.primary == ("weight", "desc")
        assert spec.tie_breaker == ("id", "asc")

    def test_middle_fields_are_kept(self):
        """Fields between primary and tie-breaker stay in the sort but not in bounds."""
        sort = [{"weight": "asc"}, {"created_at": "desc"}, {"id": "asc"}]
        paginator = KeysetPaginator(None, sort, nullable_fields=["weight"])

        body = paginator.after(3, 10).first(5)

        assert body["sort"] == sort
        should = filters_of(body)[0]["bool"]["should"]
        assert should[0] == {"range": {"weight": {"gt": 3}}}
        assert should[1]["bool"]["must"] == [{"term": {"weight": 3}}, {"range": {"id": {"gt": 10}}}]
        assert "created_at" not in str(filters_of(body))

    def test_declared_tie_breaker_position_is_kept(self):
        spec = SortSpec.from_sort([{"weight": "asc"}, {"id": "desc"}, {"created_at": "asc"}])

        assert spec.to_sort() == [{"weight": "asc"}, {"id": "desc"}, {"created_at": "asc"}]
        assert spec.tie_breaker_index == 1

    def test_sort_on_tie_breaker_alone(self):
        spec = SortSpec.from_sort([{"id": "desc"}])

        assert spec.to_sort() == [{"id": "desc"}]
        assert spec.tie_breaker == ("id", "desc")

    def test_empty_sort_rejected(self):
        with pytest.raises(InvalidArgumentError):
            SortSpec.from_sort([])

    def test_bad_direction_rejected(self):
        with pytest.raises(InvalidArgumentError, match="created_at"):
            SortSpec.from_sort([{"created_at": "sideways"}])


class TestCursors:
    """Test cursor decoding from hits and token encoding."""

    def test_max_sentinel_decodes_to_null(self):
        """Ascending nullable sort: missing values come back as the max sentinel."""
        cursor = cursor_for([MAX_SORT_SENTINEL, 17])

        assert cursor == Cursor(None, 17)

    def test_min_sentinel_decodes_to_null(self):
        """Descending nullable sort: missing values come back as the min sentinel."""
        cursor = cursor_for([MIN_SORT_SENTINEL, 17])

        assert cursor == Cursor(None, 17)

    def test_every_component_is_decoded(self):
        assert cursor_for([5, MIN_SORT_SENTINEL]) == Cursor(5, None)

    def test_ordinary_values_pass_through(self):
        assert decode_sort_value("2025-01-01") == "2025-01-01"
        assert decode_sort_value(0) == 0
        assert decode_sort_value(True) is True

    def test_cursor_for_hit(self):
        paginator = KeysetPaginator(None, [{"created_at": "asc"}])

        cursor = paginator.cursor_for({"_id": "1", "sort": [1735689600000, 42]})

        assert cursor == Cursor(1735689600000, 42)

    def test_hit_without_sort_values_rejected(self):
        with pytest.raises(InvalidArgumentError):
            cursor_for([])

    def test_unsorted_hit_rejected(self):
        paginator = KeysetPaginator(None, [{"created_at": "asc"}])

        with pytest.raises(InvalidArgumentError, match="no sort values"):
            paginator.cursor_for({"_id": "1", "_source": {}})

    def test_cursor_for_hit_with_middle_sort_field(self):
        paginator = KeysetPaginator(None, [{"weight": "asc"}, {"created_at": "desc"}, {"id": "asc"}])

        cursor = paginator.cursor_for({"_id": "9", "sort": [MAX_SORT_SENTINEL, 1735689600000, 9]})

        assert cursor == Cursor(None, 9)

    def test_tie_breaker_position_follows_sort(self):
        paginator = KeysetPaginator(None, [{"weight": "asc"}, {"id": "asc"}, {"created_at": "desc"}])

        assert paginator.cursor_for([2, 9, 1735689600000]) == Cursor(2, 9)

    def test_token_roundtrip_and_bound(self):
        token = Cursor("2025-01-01", 1).encode()
        paginator = KeysetPaginator(None, [{"created_at": "asc"}])

        body = paginator.after_cursor(Cursor.decode(token)).first(10)

        assert filters_of(body)[0]["bool"]["should"][0] == {"range": {"created_at": {"gt": "2025-01-01"}}}

    def test_invalid_token_rejected(self):
        with pytest.raises(InvalidArgumentError):
            Cursor.decode("not a cursor!")
