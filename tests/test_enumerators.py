"""Tests for the lazy sequence builders."""

import pytest

from jobiter.enumerators import Enumerator, EnumeratorBuilder
from jobiter.errors import ConfigurationError
from jobiter.relation import Relation

builder = EnumeratorBuilder()


def ids(rows):
    return [row["id"] for row in rows]


class TestTimesEnumerator:
    def test_yields_index_and_cursor(self):
        assert list(builder.build_times_enumerator(3)) == [(0, 0), (1, 1), (2, 2)]

    def test_resumes_after_cursor(self):
        assert builder.build_times_enumerator(4, cursor=1).items() == [2, 3]

    def test_exhausted_cursor(self):
        assert builder.build_times_enumerator(2, cursor=1).items() == []

    def test_zero_times(self):
        assert builder.build_times_enumerator(0).items() == []

    @pytest.mark.parametrize("n", [-1, "3", 2.5, None])
    def test_rejects_bad_count(self, n):
        with pytest.raises(ConfigurationError):
            builder.build_times_enumerator(n)

    def test_rejects_non_positional_cursor(self):
        with pytest.raises(ConfigurationError):
            builder.build_times_enumerator(3, cursor="a")


class TestOnceEnumerator:
    def test_single_item(self):
        assert list(builder.build_once_enumerator()) == [(0, 0)]

    def test_nothing_left_once_done(self):
        assert builder.build_once_enumerator(cursor=0).items() == []


class TestArrayEnumerator:
    def test_yields_elements_with_positions(self):
        assert list(builder.build_array_enumerator(["a", "b"])) == [("a", 0), ("b", 1)]

    def test_resumes_by_index(self):
        assert builder.build_array_enumerator(["a", "b", "c", "d"], cursor=1).items() == ["c", "d"]

    def test_tuples_are_sequences(self):
        assert builder.build_array_enumerator(("x", "y"), cursor=0).items() == ["y"]

    @pytest.mark.parametrize("items", [{"a", "b"}, {"a": 1}, iter([1, 2]), "abc"])
    def test_rejects_non_indexable(self, items):
        with pytest.raises(ConfigurationError, match="indexable sequence"):
            builder.build_array_enumerator(items)


class TestRecordEnumerator:
    def test_primary_key_order(self, products, product_ids):
        assert ids(builder.build_record_enumerator(products).items()) == product_ids

    def test_cursor_is_primary_key(self, products):
        pairs = list(builder.build_record_enumerator(products))
        assert [cursor for _, cursor in pairs] == [row["id"] for row, _ in pairs]

    def test_resumes_strictly_after_cursor(self, products, product_ids):
        rows = builder.build_record_enumerator(products, cursor=product_ids[3]).items()
        assert ids(rows) == product_ids[4:]

    def test_pages_smaller_than_table(self, products, product_ids):
        rows = builder.build_record_enumerator(products, batch_size=3).items()
        assert ids(rows) == product_ids

    def test_respects_where_clause(self, products):
        rows = builder.build_record_enumerator(products.where("country = ?", "CA")).items()
        assert ids(rows) == [1, 3, 5, 7, 9]

    def test_composite_columns(self, products):
        pairs = list(builder.build_record_enumerator(products, columns=["updated_at", "id"], batch_size=2))
        assert [row["id"] for row, _ in pairs] == [10, 8, 9, 6, 7, 4, 5, 2, 3, 1]
        assert pairs[0][1] == ("2024-01-01 10:00:00", 10)

    def test_composite_resume(self, products):
        cursor = ("2024-01-02 10:00:00", 8)
        rows = builder.build_record_enumerator(products, cursor=cursor, columns=["updated_at", "id"]).items()
        assert ids(rows) == [9, 6, 7, 4, 5, 2, 3, 1]

    def test_ordered_relation_rejected_when_built(self, products):
        with pytest.raises(ConfigurationError, match="The relation cannot use ORDER BY or LIMIT"):
            builder.build_record_enumerator(products.order("country DESC"))

    def test_limited_relation_rejected_when_built(self, products):
        with pytest.raises(ConfigurationError, match="The relation cannot use ORDER BY or LIMIT"):
            builder.build_record_enumerator(products.limit(5))

    def test_rejects_non_relation(self, product_ids):
        with pytest.raises(ConfigurationError):
            builder.build_record_enumerator(product_ids)

    def test_rejects_bad_batch_size(self, products):
        with pytest.raises(ConfigurationError):
            builder.build_record_enumerator(products, batch_size=0)

    def test_rejects_bad_column_name(self, products):
        with pytest.raises(ConfigurationError):
            builder.build_record_enumerator(products, columns=["id; DROP TABLE products"]).items()

    def test_lazy_until_pulled(self, products, db):
        enum = builder.build_record_enumerator(products)
        db.execute("INSERT INTO products VALUES (11, 'late', 'US', '2024-02-01 00:00:00')")
        assert ids(enum.items())[-1] == 11

    def test_rebuilding_gives_same_remaining_items(self, products):
        first = builder.build_record_enumerator(products, cursor=4)
        second = builder.build_record_enumerator(products, cursor=4)
        assert ids(first.items()) == ids(second.items())
        assert ids(first.items()) == ids(first.items())


class TestBatchEnumerator:
    def test_batch_sizes(self, products, product_ids):
        batches = builder.build_batch_enumerator(products, batch_size=3).items()
        assert [len(b) for b in batches] == [3, 3, 3, 1]
        assert [row["id"] for batch in batches for row in batch] == product_ids

    def test_cursor_is_last_row_of_batch(self, products, product_ids):
        cursors = [cursor for _, cursor in builder.build_batch_enumerator(products, batch_size=3)]
        assert cursors == [product_ids[2], product_ids[5], product_ids[8], product_ids[9]]

    def test_resume(self, products, product_ids):
        batches = builder.build_batch_enumerator(products, cursor=product_ids[5], batch_size=3).items()
        assert [ids(b) for b in batches] == [product_ids[6:9], product_ids[9:]]

    def test_exact_multiple_ends_cleanly(self, products):
        batches = builder.build_batch_enumerator(products, batch_size=5).items()
        assert [len(b) for b in batches] == [5, 5]

    def test_ordered_relation_rejected(self, products):
        with pytest.raises(ConfigurationError, match="ORDER BY or LIMIT"):
            builder.build_batch_enumerator(products.order("id"), batch_size=3)


class TestEnumerator:
    def test_is_reenterable(self):
        enum = Enumerator(lambda: iter([("a", 1)]), "one")
        assert enum.items() == ["a"]
        assert enum.items() == ["a"]
        assert "one" in repr(enum)


class TestRelation:
    def test_where_chains(self, products):
        rel = products.where("country = ?", "CA").where("id > ?", 4)
        assert ids(rel.all()) == [5, 7, 9]

    def test_order_and_limit_mark_relation(self, products):
        assert not products.ordered and not products.limited
        assert products.order("id DESC").ordered
        assert products.limit(3).limited
        assert ids(products.order("id DESC").limit(2).all()) == [10, 9]

    def test_invalid_table_name(self, db):
        with pytest.raises(ConfigurationError):
            Relation(db, "products p")

    def test_composite_cursor_must_match_columns(self, products):
        with pytest.raises(ConfigurationError):
            products.page_after(["updated_at", "id"], 3, 10)
