import unittest
from dataclasses import FrozenInstanceError

from app.services.query_builder import (
    ASCENDING,
    DEFAULT_PROJECTION,
    DEFAULT_SORT,
    DESCENDING,
    Projection,
    QueryBuilder,
    QueryDescriptor,
    parse_projection,
    parse_sort,
    positive_int_or_default,
)
from tests.fakes import ListRecordQuery


def _tours():
    return [
        {"id": "a", "name": "Sea Explorer", "duration": 7, "difficulty": "medium", "price": 497, "createdAt": 3, "versionId": 1},
        {"id": "b", "name": "Forest Hiker", "duration": 5, "difficulty": "easy", "price": 397, "createdAt": 2, "versionId": 1},
        {"id": "c", "name": "Snow Adventurer", "duration": 4, "difficulty": "difficult", "price": 997, "createdAt": 1, "versionId": 1},
        {"id": "d", "name": "City Wanderer", "duration": 9, "difficulty": "easy", "price": 1197, "createdAt": 4, "versionId": 1},
    ]


def _run(params, **kwargs):
    builder = QueryBuilder(ListRecordQuery(_tours()), params, **kwargs)
    return builder.filter().sort().limit_fields().paginate().query


class QueryBuilderFilterTests(unittest.TestCase):
    def test_reserved_params_are_not_filters(self):
        builder = QueryBuilder(ListRecordQuery([]), {"difficulty": "easy", "page": "2", "sort": "price", "limit": "3", "fields": "name"})
        self.assertEqual(builder.filter().descriptor.criteria, {"difficulty": "easy"})

    def test_comparison_operators_gain_native_prefix(self):
        builder = QueryBuilder(ListRecordQuery([]), {"duration": {"gte": "5", "lt": "9"}})
        self.assertEqual(builder.filter().descriptor.criteria, {"duration": {"$gte": "5", "$lt": "9"}})

    def test_operator_words_in_values_are_untouched(self):
        builder = QueryBuilder(ListRecordQuery([]), {"name": "gte lt"})
        self.assertEqual(builder.filter().descriptor.criteria, {"name": "gte lt"})

    def test_gte_filter_is_inclusive(self):
        docs = _run({"duration": {"gte": 5}}).all()
        self.assertEqual({doc["id"] for doc in docs}, {"a", "b", "d"})

    def test_empty_params_match_everything(self):
        self.assertEqual(len(_run({}).all()), 4)


class QueryBuilderSortTests(unittest.TestCase):
    def test_default_sort_is_newest_first_with_id_tiebreak(self):
        self.assertEqual(parse_sort(None), DEFAULT_SORT)
        self.assertEqual(DEFAULT_SORT, (("createdAt", DESCENDING), ("id", ASCENDING)))
        self.assertEqual([doc["id"] for doc in _run({}).all()], ["d", "a", "b", "c"])

    def test_sort_accepts_several_keys_and_descending_prefix(self):
        self.assertEqual(parse_sort("-ratingsAverage, price"), (("ratingsAverage", DESCENDING), ("price", ASCENDING)))
        self.assertEqual([doc["id"] for doc in _run({"sort": "-price"}).all()], ["d", "c", "a", "b"])

    def test_blank_sort_falls_back_to_default(self):
        builder = QueryBuilder(ListRecordQuery([]), {"sort": " , "})
        self.assertEqual(builder.sort().descriptor.sort, DEFAULT_SORT)


class QueryBuilderProjectionTests(unittest.TestCase):
    def test_default_projection_hides_version(self):
        self.assertEqual(parse_projection(""), DEFAULT_PROJECTION)
        docs = _run({}).all()
        self.assertTrue(all("versionId" not in doc for doc in docs))
        self.assertIn("price", docs[0])

    def test_inclusion_keeps_id(self):
        docs = _run({"fields": "name,price"}).all()
        self.assertEqual(set(docs[0]), {"id", "name", "price"})

    def test_exclusion_drops_named_fields(self):
        self.assertEqual(parse_projection("-summary,-images"), Projection(exclude=("summary", "images")))
        docs = _run({"fields": "-price"}).all()
        self.assertNotIn("price", docs[0])
        self.assertIn("versionId", docs[0])


class QueryBuilderPaginationTests(unittest.TestCase):
    def test_defaults(self):
        builder = QueryBuilder(ListRecordQuery([]), {}).paginate()
        self.assertEqual((builder.descriptor.skip, builder.descriptor.limit), (0, 100))

    def test_second_page_skips_one_page(self):
        builder = QueryBuilder(ListRecordQuery([]), {"page": "2", "limit": "10"}).paginate()
        self.assertEqual((builder.descriptor.skip, builder.descriptor.limit), (10, 10))

    def test_default_limit_can_be_configured(self):
        builder = QueryBuilder(ListRecordQuery([]), {"page": "3"}, default_limit=2).paginate()
        self.assertEqual((builder.descriptor.skip, builder.descriptor.limit), (4, 2))

    def test_malformed_numbers_fall_back_to_defaults(self):
        self.assertEqual(positive_int_or_default("abc", 7), 7)
        self.assertEqual(positive_int_or_default("0", 7), 7)
        self.assertEqual(positive_int_or_default("-3", 7), 7)
        self.assertEqual(positive_int_or_default("nan", 7), 7)
        self.assertEqual(positive_int_or_default("inf", 7), 7)
        self.assertEqual(positive_int_or_default("2.9", 7), 2)
        self.assertEqual(positive_int_or_default(None, 7), 7)

    def test_page_beyond_results_is_empty(self):
        self.assertEqual(_run({"page": "5", "limit": "2"}).all(), [])


class QueryBuilderCompositionTests(unittest.TestCase):
    def test_steps_return_new_builders(self):
        base = QueryBuilder(ListRecordQuery([]), {"difficulty": "easy"})
        filtered = base.filter()
        self.assertIsNot(base, filtered)
        self.assertEqual(base.descriptor, QueryDescriptor())
        with self.assertRaises(FrozenInstanceError):
            filtered.params = {}

    def test_repeating_a_step_gives_the_same_descriptor(self):
        base = QueryBuilder(ListRecordQuery([]), {"sort": "price", "page": "2"})
        self.assertEqual(base.sort().paginate().descriptor, base.sort().sort().paginate().paginate().descriptor)

    def test_unapplied_steps_are_not_replayed(self):
        query = QueryBuilder(ListRecordQuery([]), {"page": "2"}).paginate().query
        self.assertEqual(query.calls, [("skip", 100), ("limit", 100)])

    def test_steps_are_replayed_in_fixed_order(self):
        params = {"difficulty": "easy", "sort": "price", "fields": "name", "page": "1", "limit": "1"}
        query = QueryBuilder(ListRecordQuery(_tours()), params).paginate().limit_fields().sort().filter().query
        self.assertEqual([call[0] for call in query.calls], ["find", "sort", "select", "skip", "limit"])

    def test_full_request(self):
        params = {"difficulty": "easy", "duration": {"gte": 5}, "sort": "-price", "fields": "name,price", "page": "1", "limit": "1"}
        docs = _run(params).all()
        self.assertEqual(docs, [{"id": "d", "name": "City Wanderer", "price": 1197}])

    def test_described_request_for_second_page(self):
        params = {"difficulty": "easy", "sort": "-price,ratingsAverage", "fields": "name,price", "page": "2", "limit": "5"}
        descriptor = QueryBuilder(ListRecordQuery([]), params).filter().sort().limit_fields().paginate().descriptor
        self.assertEqual(
            descriptor,
            QueryDescriptor(
                criteria={"difficulty": "easy"},
                sort=(("price", DESCENDING), ("ratingsAverage", ASCENDING)),
                projection=Projection(include=("name", "price")),
                skip=5,
                limit=5,
            ),
        )

    def test_plain_value_is_equality(self):
        docs = _run({"duration": 5}).all()
        self.assertEqual([doc["id"] for doc in docs], ["b"])
