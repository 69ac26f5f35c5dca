"""Tests for resource id extractors."""

import pytest
from starlette.requests import Request

from rbac.extractors import client_id_from_path, resource_id_from_path


def _request(path_params: dict) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [],
        "query_string": b"",
        "path_params": path_params,
    }
    return Request(scope)


class TestClientIdFromPath:

    def test_reads_client_id(self):
        assert client_id_from_path(_request({"client_id": "c42"})) == "c42"

    def test_missing_param(self):
        assert client_id_from_path(_request({})) is None

    @pytest.mark.parametrize("value", ["new", "[id]", "[clientId]", "", "   "])
    def test_non_ids(self, value):
        assert client_id_from_path(_request({"client_id": value})) is None

    def test_other_params_ignored(self):
        assert client_id_from_path(_request({"id": "c42"})) is None


class TestResourceIdFromPath:

    def test_reads_named_param(self):
        extract = resource_id_from_path("ticket_id")
        assert extract(_request({"ticket_id": "t-1", "client_id": "c1"})) == "t-1"

    def test_non_string_values_stringified(self):
        extract = resource_id_from_path("document_id")
        assert extract(_request({"document_id": 17})) == "17"

    def test_new_rejected(self):
        extract = resource_id_from_path("document_id")
        assert extract(_request({"document_id": "new"})) is None

    def test_extractor_named_after_param(self):
        assert resource_id_from_path("ticket_id").__name__ == "ticket_id_from_path"
