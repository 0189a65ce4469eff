from pathlib import Path

import pytest

from esbind.api.query import encode_params
from esbind.errors import SpecError
from esbind.parser.base import ParamKind
from esbind.parser.rest_api_spec import parse_document, parse_rest_api_spec

FIXTURES = Path(__file__).parent / "fixtures" / "rest-api-spec"


def _minimal(**extra) -> dict:
    definition = {"url": {"paths": [{"path": "/", "methods": ["head"]}]}}
    definition.update(extra)
    return definition


class TestParseRestApiSpec:
    def test_parse_directory_skips_common_and_other_files(self):
        endpoints = parse_rest_api_spec(FIXTURES)
        assert sorted(e.name for e in endpoints) == [
            "cluster.stats",
            "get",
            "indices.put_mapping",
            "search_application.list",
            "watcher.get_watch",
        ]

    def test_parse_get(self):
        [get] = parse_rest_api_spec(FIXTURES / "get.json")
        assert get.description == "Returns a document."
        assert get.documentation_url.endswith("docs-get.html")
        assert get.paths[0].path == "/{index}/_doc/{id}"
        assert get.paths[0].methods == ["GET"]
        assert get.required_parts == ["index", "id"]
        assert get.body is None

    def test_params_keep_declaration_order(self):
        [get] = parse_rest_api_spec(FIXTURES / "get.json")
        assert [p.name for p in get.params] == ["preference", "realtime", "_source", "version", "version_type"]

    def test_param_kinds(self):
        [get] = parse_rest_api_spec(FIXTURES / "get.json")
        assert get.param("preference").kind == ParamKind.STRING
        assert get.param("realtime").kind == ParamKind.BOOLEAN
        assert get.param("_source").kind == ParamKind.LIST
        assert get.param("version").kind == ParamKind.NUMBER
        assert get.param("version_type").kind == ParamKind.ENUM
        assert get.param("version_type").options == ["internal", "external", "external_gte"]

    def test_int_type_is_number(self):
        [listing] = parse_rest_api_spec(FIXTURES / "search_application.list.json")
        assert listing.param("from").kind == ParamKind.NUMBER
        assert listing.stability == "beta"
        assert listing.namespace == "search_application"

    def test_body_and_list_part(self):
        [put_mapping] = parse_rest_api_spec(FIXTURES / "indices.put_mapping.json")
        assert put_mapping.body.required is True
        assert put_mapping.body.description == "The mapping definition"
        assert put_mapping.parts["index"].kind == ParamKind.LIST
        assert put_mapping.paths[0].methods == ["PUT", "POST"]
        assert put_mapping.param("timeout").kind == ParamKind.TIME

    def test_optional_parts(self):
        [stats] = parse_rest_api_spec(FIXTURES / "cluster.stats.json")
        assert [t.path for t in stats.paths] == ["/_cluster/stats", "/_cluster/stats/nodes/{node_id}"]
        assert stats.optional_parts == ["node_id"]

    def test_yaml_file(self, tmp_path):
        f = tmp_path / "ping.yaml"
        f.write_text("ping:\n  url:\n    paths:\n      - path: /\n        methods: [HEAD]\n")
        [ping] = parse_rest_api_spec(f)
        assert ping.name == "ping"
        assert ping.paths[0].methods == ["HEAD"]

    def test_invalid_yaml_raises(self, tmp_path):
        f = tmp_path / "broken.yaml"
        f.write_text("ping: [\n")
        with pytest.raises(SpecError):
            parse_rest_api_spec(f)

    def test_non_mapping_document_raises(self, tmp_path):
        f = tmp_path / "list.yaml"
        f.write_text("- a\n- b\n")
        with pytest.raises(SpecError, match="expected a mapping"):
            parse_rest_api_spec(f)


class TestParseDocument:
    def test_skips_underscore_keys(self):
        endpoints = parse_document({"_common": {"params": {}}, "ping": _minimal()})
        assert [e.name for e in endpoints] == ["ping"]

    def test_methods_are_upper_cased(self):
        [ping] = parse_document({"ping": _minimal()})
        assert ping.paths[0].methods == ["HEAD"]

    def test_missing_paths_raises(self):
        with pytest.raises(SpecError, match="declares no paths"):
            parse_document({"ping": {"url": {"paths": []}}})

    def test_path_without_methods_raises(self):
        with pytest.raises(SpecError, match="without path/methods"):
            parse_document({"ping": {"url": {"paths": [{"path": "/"}]}}})

    def test_unknown_param_type_raises(self):
        with pytest.raises(SpecError, match="unknown type"):
            parse_document({"ping": _minimal(params={"x": {"type": "geo_point"}})})

    def test_definition_must_be_mapping(self):
        with pytest.raises(SpecError, match="not a mapping"):
            parse_document({"ping": ["GET", "/"]})

    def test_date_and_time_types(self):
        [ep] = parse_document({"x": _minimal(params={"end": {"type": "date"}, "timeout": {"type": "time"}})})
        assert ep.param("end").kind == ParamKind.STRING
        assert ep.param("timeout").kind == ParamKind.TIME

    def test_missing_documentation_uses_defaults(self):
        [ep] = parse_document({"ping": _minimal()})
        assert ep.description == ""
        assert ep.documentation_url == ""
        assert ep.stability == "stable"

    def test_boolean_options_lowercased(self):
        # unquoted YAML options arrive as Python booleans
        refresh = {"type": "enum", "options": [True, False, "wait_for"]}
        [ep] = parse_document({"index": _minimal(params={"refresh": refresh})})
        assert ep.param("refresh").options == ["true", "false", "wait_for"]
        assert encode_params(ep, {"refresh": True}) == {"refresh": "true"}
