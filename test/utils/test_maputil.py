import pytest
import tomlkit

from tedge_oscar.utils.maputil import set_nested_value


def test_creates_intermediate_levels():
    data = {}
    set_nested_value(data, ["input", "mqtt", "topics"], ["a/b"])
    assert data == {"input": {"mqtt": {"topics": ["a/b"]}}}


def test_overwrites_existing_value_and_keeps_siblings():
    data = {"input": {"mqtt": {"topics": ["x/y"], "qos": 1}}}
    set_nested_value(data, ["input", "mqtt", "topics"], ["a/b", "c/d"])
    assert data["input"]["mqtt"] == {"topics": ["a/b", "c/d"], "qos": 1}


def test_works_on_toml_documents():
    doc = tomlkit.parse('name = "flow"\n\n[input]\nkind = "mqtt"\n')
    set_nested_value(doc, ["input", "mqtt", "topics"], ["a/b"])
    reparsed = tomlkit.parse(tomlkit.dumps(doc)).unwrap()
    assert reparsed == {"name": "flow", "input": {"kind": "mqtt", "mqtt": {"topics": ["a/b"]}}}


def test_rejects_non_mapping_intermediate():
    data = {"input": "mqtt"}
    with pytest.raises(ValueError, match="'input' is a str"):
        set_nested_value(data, ["input", "mqtt", "topics"], ["a/b"])


def test_rejects_empty_path():
    with pytest.raises(ValueError):
        set_nested_value({}, [], 1)
