import pytest

from bibliotech.book import Book, BookStatus
from bibliotech.pipeline import (
    Ownership,
    SortField,
    SortOrder,
    ViewParams,
    fold_text,
    process_books,
    sort_books,
    summarize,
)


@pytest.fixture
def records(make_book):
    return [
        make_book("The Hobbit", "J.R.R. Tolkien", user_id="u1", status=BookStatus.COMPLETED, created_at=300),
        make_book("Dune", "Frank Herbert", user_id="u2", status=BookStatus.WISHLIST, created_at=100),
        make_book("àbaco", "Zeno", user_id="u1", status=BookStatus.READING, created_at=200),
        make_book("Emma", "Jane Austen", user_id="u2", status=BookStatus.READING, created_at=400),
    ]


def titles(books):
    return [b.title for b in books]


def test_empty_records_give_empty_output():
    assert process_books([], ViewParams(), "u1") == []


def test_default_view_is_newest_first(records):
    assert titles(process_books(records, ViewParams(), "u1")) == ["Emma", "The Hobbit", "àbaco", "Dune"]


def test_output_is_subset_without_duplicates(records):
    params = ViewParams(query="e", sort_field=SortField.TITLE)
    result = process_books(records, params, "u1")
    assert len({id(b) for b in result}) == len(result)
    assert all(b in records for b in result)


def test_mine_keeps_only_session_user_records(records):
    result = process_books(records, ViewParams(ownership=Ownership.MINE), "u1")
    assert result and all(b.user_id == "u1" for b in result)


def test_mine_without_user_is_empty(records):
    assert process_books(records, ViewParams(ownership="mine"), None) == []


def test_all_with_status_all_keeps_everything(records):
    assert len(process_books(records, ViewParams(ownership="all", status="all"), "u1")) == len(records)


def test_status_filter(records):
    result = process_books(records, ViewParams(status="reading"), "u1")
    assert sorted(titles(result)) == ["Emma", "àbaco"]


def test_status_filter_accepts_display_label(records):
    assert ViewParams(status="Lista dei Desideri").status == "wishlist"


def test_unknown_status_filter_is_rejected():
    with pytest.raises(ValueError):
        ViewParams(status="borrowed")


def test_search_is_case_insensitive_on_author(records):
    result = process_books(records, ViewParams(query="tolkien"), "u1")
    assert titles(result) == ["The Hobbit"]


def test_search_matches_title_or_author(records):
    assert titles(process_books(records, ViewParams(query="DUNE"), "u1")) == ["Dune"]
    assert titles(process_books(records, ViewParams(query="austen"), "u1")) == ["Emma"]


def test_filters_combine_with_and(records):
    params = ViewParams(ownership="mine", status="reading", query="a")
    assert titles(process_books(records, params, "u2")) == ["Emma"]


def test_title_sort_folds_case_and_accents(records):
    params = ViewParams(sort_field="title", sort_order="ascending")
    assert titles(process_books(records, params, "u1")) == ["àbaco", "Dune", "Emma", "The Hobbit"]


def test_author_sort(records):
    params = ViewParams(sort_field=SortField.AUTHOR, sort_order=SortOrder.ASCENDING)
    authors = [b.author for b in process_books(records, params, "u1")]
    assert authors == ["Frank Herbert", "J.R.R. Tolkien", "Jane Austen", "Zeno"]


def test_fold_text_treats_accents_as_base_letters():
    assert fold_text("À") == fold_text("a")
    assert fold_text("Émile") == "emile"
    assert fold_text(None) == ""


def test_sort_is_idempotent(records):
    once = sort_books(records, "title", "descending")
    twice = sort_books(once, "title", "descending")
    assert once == twice


def test_reverse_order_without_duplicates_is_exact_reverse(records):
    asc = sort_books(records, "createdAt", "ascending")
    desc = sort_books(records, "createdAt", "descending")
    assert desc == list(reversed(asc))


def test_ties_keep_input_order_in_both_directions(make_book):
    first = make_book("Same", "A", id="x1", created_at=5)
    second = make_book("same", "B", id="x2", created_at=5)
    third = make_book("Other", "C", id="x3", created_at=9)
    books = [first, second, third]

    asc = sort_books(books, "title", "ascending")
    desc = sort_books(books, "title", "descending")
    assert [b.id for b in asc] == ["x3", "x1", "x2"]
    assert [b.id for b in desc] == ["x1", "x2", "x3"]

    by_date_desc = sort_books(books, "createdAt", "descending")
    assert [b.id for b in by_date_desc] == ["x3", "x1", "x2"]


def test_missing_fields_do_not_raise():
    blank = Book(id="n1", title="", author="", user_id="u1")
    blank.created_at = None
    named = Book(id="n2", title="Zed", author="Zed", user_id="u1", created_at=10)

    assert [b.id for b in sort_books([named, blank], "title")] == ["n1", "n2"]
    assert [b.id for b in sort_books([named, blank], "createdAt")] == ["n1", "n2"]
    assert process_books([blank], ViewParams(query="x"), "u1") == []


def test_input_is_not_mutated(records):
    snapshot = list(records)
    process_books(records, ViewParams(sort_field="title", sort_order="ascending"), "u1")
    assert records == snapshot


def test_toggled_order_flips_direction():
    params = ViewParams()
    assert params.sort_order is SortOrder.DESCENDING
    assert params.toggled_order().sort_order is SortOrder.ASCENDING


def test_summarize_counts_by_status(records):
    assert summarize(records) == {"total": 4, "reading": 2, "completed": 1, "wishlist": 1}
    assert summarize([]) == {"total": 0, "reading": 0, "completed": 0, "wishlist": 0}
