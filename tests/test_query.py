from datetime import timedelta
from pathlib import Path
from urllib.parse import parse_qsl

import pytest

from esbind.api.query import encode_params, encode_query, format_duration
from esbind.api.request import RequestOptions
from esbind.errors import InvalidParameterError
from esbind.parser.base import Endpoint, Param, ParamKind, PathTemplate
from esbind.parser.rest_api_spec import parse_rest_api_spec

FIXTURES = Path(__file__).parent / "fixtures" / "rest-api-spec"
ENDPOINTS = {e.name: e for e in parse_rest_api_spec(FIXTURES)}
GET = ENDPOINTS["get"]


class TestFormatDuration:
    def test_milliseconds(self):
        assert format_duration(timedelta(seconds=5)) == "5000ms"
        assert format_duration(timedelta(minutes=1)) == "60000ms"

    def test_sub_millisecond_uses_nanos(self):
        assert format_duration(timedelta(microseconds=500)) == "500000nanos"


class TestEncodeParams:
    def test_unset_params_omitted(self):
        assert encode_params(GET, {}) == {}
        assert encode_params(GET, {"preference": None, "_source": []}) == {}

    def test_declaration_order(self):
        encoded = encode_params(GET, {"version": 3, "preference": "_local"})
        assert list(encoded) == ["preference", "version"]
        assert encoded["version"] == "3"

    def test_booleans(self):
        assert encode_params(GET, {"realtime": True}) == {"realtime": "true"}
        assert encode_params(GET, {"realtime": False}) == {"realtime": "false"}

    def test_list_comma_joined(self):
        assert encode_params(GET, {"_source": ["title", "tags"]}) == {"_source": "title,tags"}

    def test_list_accepts_preformatted_string(self):
        assert encode_params(GET, {"_source": "title,tags"}) == {"_source": "title,tags"}

    def test_list_accepts_single_scalar(self):
        assert encode_params(GET, {"_source": False}) == {"_source": "false"}

    def test_list_rejects_mapping(self):
        with pytest.raises(InvalidParameterError, match="expected a list"):
            encode_params(GET, {"_source": {"a": 1}})

    def test_time_params(self):
        put_mapping = ENDPOINTS["indices.put_mapping"]
        assert encode_params(put_mapping, {"timeout": timedelta(seconds=30)}) == {"timeout": "30000ms"}
        assert encode_params(put_mapping, {"timeout": "1m"}) == {"timeout": "1m"}
        assert encode_params(put_mapping, {"timeout": timedelta(0)}) == {}

    def test_enum_option_checked(self):
        assert encode_params(GET, {"version_type": "external"}) == {"version_type": "external"}
        with pytest.raises(InvalidParameterError, match="version_type"):
            encode_params(GET, {"version_type": "bogus"})

    def test_enum_accepts_boolean(self):
        ep = Endpoint(
            name="index",
            paths=[PathTemplate(path="/{index}/_doc", methods=["POST"])],
            params=[Param(name="refresh", kind=ParamKind.ENUM, options=["true", "false", "wait_for"])],
        )
        assert encode_params(ep, {"refresh": True}) == {"refresh": "true"}
        assert encode_params(ep, {"refresh": "wait_for"}) == {"refresh": "wait_for"}

    def test_number_rejects_bool(self):
        with pytest.raises(InvalidParameterError):
            encode_params(GET, {"version": True})

    def test_boolean_rejects_string(self):
        with pytest.raises(InvalidParameterError):
            encode_params(GET, {"realtime": "yes"})

    def test_nested_list_rejected(self):
        with pytest.raises(InvalidParameterError):
            encode_params(GET, {"_source": [["a"]]})

    def test_universal_flags_come_last_in_order(self):
        options = RequestOptions(
            pretty=True,
            human=True,
            error_trace=True,
            filter_path=["hits.hits._id", "took"],
        )
        encoded = encode_params(GET, {"realtime": True}, options)
        assert list(encoded.items()) == [
            ("realtime", "true"),
            ("pretty", "true"),
            ("human", "true"),
            ("error_trace", "true"),
            ("filter_path", "hits.hits._id,took"),
        ]

    @pytest.mark.parametrize("flag", ["pretty", "human", "error_trace"])
    def test_flag_sets_exactly_key_true(self, flag):
        encoded = encode_params(GET, {}, RequestOptions(**{flag: True}))
        assert encode_query(encoded) == f"{flag}=true"

    def test_default_options_add_nothing(self):
        assert encode_params(GET, {}, RequestOptions()) == {}

    def test_list_endpoint_from_and_size(self):
        listing = ENDPOINTS["search_application.list"]
        encoded = encode_params(listing, {"from": 10, "size": 20})
        assert encode_query(encoded) == "from=10&size=20"


class TestEncodeQuery:
    def test_round_trip(self):
        encoded = encode_params(GET, {"preference": "a b&c", "_source": ["x", "y"], "realtime": False})
        assert parse_qsl(encode_query(encoded)) == list(encoded.items())

    def test_empty(self):
        assert encode_query({}) == ""
