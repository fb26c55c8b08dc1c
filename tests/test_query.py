"""Unit tests for Query descriptors."""

from datetime import datetime, timezone
from unittest.mock import Mock

import pytest
from conftest import make_documents

from itembase.accumulators import DocumentCollection
from itembase.errors import ItembaseAPIError
from itembase.query import Query

ROOT = "http://sandbox.api.itembase.io/v1"


def envelope(documents, total):
    return {
        "documents": documents,
        "num_documents_found": total,
        "num_documents_returned": len(documents),
    }


@pytest.fixture
def transport():
    transport = Mock()
    transport.call.return_value = envelope([], 0)
    return transport


@pytest.fixture
def base(transport):
    return Query(transport=transport, root=ROOT, user_id="u1", access_token="tok")


class TestNavigation:
    """URL construction."""

    def test_user_root(self, base):
        assert base.url == f"{ROOT}/users/u1"

    @pytest.mark.parametrize("name", ["transactions", "products", "buyers", "profiles"])
    def test_collections(self, base, name):
        assert getattr(base, name)().url == f"{ROOT}/users/u1/{name}"

    def test_collection_switch_resets_to_user_root(self, base):
        assert base.products().buyers().url == f"{ROOT}/users/u1/buyers"

    def test_child_and_select(self, base):
        query = base.products().child("/p-1/").select("variants")

        assert query.url == f"{ROOT}/users/u1/products/p-1/variants"


class TestImmutability:
    """Builders never modify the receiver."""

    def test_filters_return_new_query(self, base):
        limited = base.products().limit(10)

        assert base.params == {}
        assert limited.params == {"document_limit": "10"}
        assert base.url == f"{ROOT}/users/u1"

    def test_shared_prefix_does_not_leak(self, base):
        products = base.products()
        first = products.limit(5)
        second = products.offset(20)

        assert first.params == {"document_limit": "5"}
        assert second.params == {"start_at_document": "20"}
        assert products.params == {}

    def test_params_is_a_copy(self, base):
        query = base.limit(1)
        query.params["document_limit"] = "999"

        assert query.params == {"document_limit": "1"}

    def test_query_params_read_only(self, base):
        with pytest.raises(TypeError):
            base.limit(1).query_params["x"] = "y"

    def test_access_token_hidden_from_repr(self, base):
        assert "tok" not in repr(base)


class TestFilters:
    """Query string encoding."""

    def test_time_filters(self, base):
        moment = datetime(2024, 3, 1, 8, 30, 0, 250000, tzinfo=timezone.utc)

        query = (
            base.transactions()
            .created_at_from(moment)
            .created_at_to(moment)
            .updated_at_from(moment)
            .updated_at_to(moment)
        )

        assert query.params == {
            "created_at_from": "2024-03-01T08:30:00.25Z",
            "created_at_to": "2024-03-01T08:30:00.25Z",
            "updated_at_from": "2024-03-01T08:30:00.25Z",
            "updated_at_to": "2024-03-01T08:30:00.25Z",
        }

    def test_limit_and_offset(self, base):
        assert base.limit(50).offset(100).params == {
            "document_limit": "50",
            "start_at_document": "100",
        }

    @pytest.mark.parametrize("value", [-1, 1.5, "10", True])
    def test_invalid_limit(self, base, value):
        with pytest.raises(ValueError):
            base.limit(value)

    def test_invalid_offset(self, base):
        with pytest.raises(ValueError):
            base.offset(-5)

    def test_max_results(self, base):
        assert base.max_results(25).cap == 25
        assert base.cap == 0

    def test_later_value_wins(self, base):
        assert base.limit(5).limit(7).params == {"document_limit": "7"}


class TestRequests:
    """Terminal operations."""

    def test_get(self, base, transport):
        transport.call.return_value = {"uuid": "p-1"}

        result = base.products().child("p-1").get()

        assert result == {"uuid": "p-1"}
        transport.call.assert_called_once_with(
            "GET", f"{ROOT}/users/u1/products/p-1", "tok", None, {}
        )

    def test_get_into(self, base, transport):
        transport.call.return_value = {"uuid": "p-1"}

        assert base.products().child("p-1").get_into(lambda d: d["uuid"]) == "p-1"

    def test_found_requests_one_document(self, base, transport):
        transport.call.return_value = envelope([{"id": "a"}], 1234)

        assert base.transactions().limit(50).found() == 1234

        args = transport.call.call_args.args
        assert args[4] == {"document_limit": "1"}

    def test_page(self, base, transport):
        transport.call.return_value = envelope([{"id": "a"}], 3)

        page = base.products().offset(2).page()

        assert page.items == ({"id": "a"},)
        assert transport.call.call_args.args[4] == {"start_at_document": "2"}

    def test_get_all_into_drains_every_page(self, base, transport):
        documents = make_documents(5)

        def answer(method, url, token, body, params):
            start = int(params.get("start_at_document", 0))
            return envelope(documents[start : start + 2], len(documents))

        transport.call.side_effect = answer
        into = DocumentCollection()

        result = base.products().limit(2).get_all_into(into)

        assert result.complete
        assert into.documents() == documents
        assert transport.call.call_count == 3
        for call in transport.call.call_args_list:
            assert call.args[:3] == ("GET", f"{ROOT}/users/u1/products", "tok")
            assert call.args[4]["document_limit"] == "2"

    def test_get_all_into_from_offset(self, base, transport):
        documents = make_documents(150)

        def answer(method, url, token, body, params):
            start = int(params.get("start_at_document", 0))
            return envelope(documents[start : start + 50], len(documents))

        transport.call.side_effect = answer
        into = DocumentCollection()

        result = base.products().offset(100).get_all_into(into)

        assert result.complete
        assert into.documents() == documents[100:]

    def test_get_all_into_respects_max_results(self, base, transport):
        transport.call.return_value = envelope(make_documents(10), 100)
        into = DocumentCollection()

        result = base.products().max_results(4).get_all_into(into)

        assert result.capped
        assert into.count() == 4

    def test_errors_propagate(self, base, transport):
        transport.call.side_effect = ItembaseAPIError("Forbidden", 403)

        with pytest.raises(ItembaseAPIError):
            base.buyers().get()
