"""Query parameters and payloads must never reach SQL as anything but bound values."""

import json

import pytest

from llamaio.core.db_client import compile_filter
from llamaio.core.query import Condition, Operator
from llamaio.domain.task import TASK_FIELDS
from llamaio.services import task_service, user_service
from llamaio.services.query_translator import QueryParameterError, parse_filter, parse_sort
from tests.helpers import task_body, user_body


MALICIOUS = "x') OR 1=1; DROP TABLE users; --"


@pytest.mark.unit
class TestCompiledFilters:
    def test_values_are_bound_parameters(self):
        sql, params = compile_filter("tasks", parse_filter({"name": MALICIOUS}, TASK_FIELDS))

        assert MALICIOUS not in sql
        assert params == [MALICIOUS]

    def test_field_names_are_validated_before_compiling(self):
        with pytest.raises(ValueError, match="Invalid field name"):
            compile_filter("tasks", Condition(field="name') OR 1=1 --", op=Operator.EQ, value="x"))

    @pytest.mark.parametrize("field", [MALICIOUS, "$where", "name.length", "__proto__"])
    def test_unknown_fields_rejected_by_translator(self, field):
        with pytest.raises(QueryParameterError):
            parse_filter({field: "x"}, TASK_FIELDS)

    def test_sort_field_names_rejected(self):
        with pytest.raises(QueryParameterError):
            parse_sort({MALICIOUS: 1}, TASK_FIELDS)


@pytest.mark.unit
class TestStoredPayloads:
    async def test_malicious_names_stored_verbatim(self, store):
        task = await task_service.create_task(store, body=task_body(MALICIOUS))
        await user_service.create_user(store, body=user_body("Mallory"))

        tasks = await task_service.list_tasks(store, params={"where": json.dumps({"name": MALICIOUS})})

        assert [found["_id"] for found in tasks] == [task["_id"]]
        assert await store.count_records(collection="users") == 1

    async def test_operator_values_cannot_smuggle_queries(self, store):
        await task_service.create_task(store, body=task_body("Laundry"))

        with pytest.raises(QueryParameterError):
            await task_service.list_tasks(store, params={"where": json.dumps({"name": {"$ne": {"$gt": ""}}})})
