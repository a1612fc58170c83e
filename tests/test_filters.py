import pytest

from guest_order.config import PaginationConfiguration
from guest_order.errors import WrongParameterError
from guest_order.filters import (
    parse_filter,
    parse_order_by,
    parse_paginated_list_query,
)

PAGINATION = PaginationConfiguration(default_offset=0, default_page_size=20, max_page_size=50)


def test_empty_filter_is_none():
    assert parse_filter(None) is None
    assert parse_filter("   ") is None


def test_simple_comparison_binds_value():
    clause = parse_filter("status eq 'PENDING'")
    assert clause.sql == "status = :f0"
    assert clause.params == {"f0": "PENDING"}


def test_and_binds_tighter_than_or():
    clause = parse_filter(
        "status eq 'PENDING' or status eq 'CLOSED' and createdAt ge '2024-01-01'"
    )
    assert clause.sql == "(status = :f0 OR (status = :f1 AND created_at >= :f2))"


def test_parentheses_in_and_null():
    clause = parse_filter("(id in ['a', 'b'] or cancelReason eq null) and closedAt ne null")
    assert clause.sql == "((id IN (:f0, :f1) OR cancel_reason IS NULL) AND closed_at IS NOT NULL)"
    assert clause.params == {"f0": "a", "f1": "b"}


def test_quoted_quote_is_unescaped():
    clause = parse_filter("cancelReason eq 'customer''s request'")
    assert clause.params == {"f0": "customer's request"}


@pytest.mark.parametrize(
    "expression",
    [
        "customer eq 'x'",
        "status like 'x'",
        "status eq",
        "status eq 'x' and",
        "(status eq 'x'",
        "status gt null",
        "status eq 'x' ;",
    ],
)
def test_invalid_filters(expression):
    with pytest.raises(WrongParameterError):
        parse_filter(expression)


def test_order_by():
    assert parse_order_by("createdAt desc, status") == [
        ("created_at", "DESC"),
        ("status", "ASC"),
    ]
    assert parse_order_by("") == []
    with pytest.raises(WrongParameterError):
        parse_order_by("customer desc")
    with pytest.raises(WrongParameterError):
        parse_order_by("status sideways")


def test_pagination_defaults():
    list_query = parse_paginated_list_query({}, PAGINATION)
    assert list_query.pagination.offset == 0
    assert list_query.pagination.limit == 20
    assert list_query.filter is None
    assert list_query.order_by == []


def test_pagination_from_query():
    list_query = parse_paginated_list_query(
        {"$top": "5", "$skip": "10", "$orderby": "createdAt desc"}, PAGINATION
    )
    assert (list_query.pagination.offset, list_query.pagination.limit) == (10, 5)


def test_page_size_ceiling_names_maximum():
    with pytest.raises(WrongParameterError, match="maximum page size of 50"):
        parse_paginated_list_query({"$top": "51"}, PAGINATION)


def test_disabling_pagination_is_rejected():
    with pytest.raises(WrongParameterError):
        parse_paginated_list_query({"$paginate": "false"}, PAGINATION)


@pytest.mark.parametrize("query", [{"$top": "0"}, {"$top": "abc"}, {"$skip": "-1"}])
def test_invalid_pagination_values(query):
    with pytest.raises(WrongParameterError):
        parse_paginated_list_query(query, PAGINATION)


@pytest.mark.parametrize(
    "expression",
    [
        "status eq 5",
        "createdAt ge 2024",
        "status ne true",
        "id in ['a', 1]",
    ],
)
def test_unquoted_values_are_rejected(expression):
    with pytest.raises(WrongParameterError, match="must be a quoted string"):
        parse_filter(expression)
