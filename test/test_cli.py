import json
import os

import pytest

from tedge_oscar.cli import main, render, tarball_name

ASSETS_DIR = os.path.join(os.path.dirname(__file__), "assets")
CONFIG = os.path.join(ASSETS_DIR, "config.toml")


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    monkeypatch.setenv("OSCAR_HOME", str(tmp_path))
    monkeypatch.setenv("TEDGE_CONFIG_DIR", str(tmp_path / "tedge"))
    entrypoint = tmp_path / "images" / "example" / "counter" / "lib"
    entrypoint.mkdir(parents=True)
    (entrypoint / "main.js").write_text("main")
    return tmp_path


def test_deploy_list_remove(workspace, capsys):
    ref = "registry.example.com/example/counter:1.0"
    assert main(["--config", CONFIG, "instances", "deploy", "counter1", ref, "--topics", "a/b"]) == 0
    instance = workspace / "tedge" / "mappers" / "flows" / "flows" / "counter1.toml"
    assert instance.exists()

    capsys.readouterr()
    assert main(["--config", CONFIG, "instances", "ps", "-o", "jsonl"]) == 0
    rows = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert rows == [
        {
            "name": "counter1",
            "path": "${TEDGE_CONFIG_DIR}/mappers/flows/flows/counter1.toml",
            "topics": "a/b",
            "image": "counter",
            "imageVersion": "<unknown>",
        }
    ]

    assert main(["--config", CONFIG, "instances", "rm", "counter1"]) == 0
    assert not instance.exists()
    assert main(["--config", CONFIG, "instances", "rm", "counter1"]) == 0


def test_list_select_columns(workspace, capsys):
    main(["--config", CONFIG, "instances", "deploy", "counter1", "registry.example.com/example/counter"])
    capsys.readouterr()
    main(["--config", CONFIG, "instances", "ls", "-o", "tsv", "--select", "name,image"])
    assert capsys.readouterr().out == "counter1\tcounter\n"


def test_images_list(workspace, capsys):
    assert main(["--config", CONFIG, "images", "ls", "-o", "jsonl"]) == 0
    (row,) = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert row["name"] == "example/counter"
    assert row["version"] == "<unknown>"


def test_failure_returns_nonzero(workspace):
    assert main(["--config", CONFIG, "instances", "deploy", "counter1", "not a reference"]) == 1


def test_render_table(capsys):
    count = render([{"name": "a", "image": "counter"}], ["name", "image"], "table")
    assert count == 1
    assert capsys.readouterr().out.splitlines() == ["NAME  IMAGE", "a     counter"]


@pytest.mark.parametrize(
    "source,expected",
    [
        ("https://example.com/flows/counter-1.0.tar.gz?sig=abc", "counter-1.0"),
        ("/tmp/counter.tgz", "counter"),
        ("counter.tar", "counter"),
    ],
)
def test_tarball_name(source, expected):
    assert tarball_name(source) == expected


def test_invalid_log_level_is_rejected(workspace, capsys):
    with pytest.raises(SystemExit) as exc:
        main(["--log-level", "loud", "--config", CONFIG, "images", "ls"])
    assert exc.value.code == 2
    assert "invalid choice" in capsys.readouterr().err


def test_log_level_is_case_insensitive(workspace):
    assert main(["--log-level", "DEBUG", "--config", CONFIG, "images", "ls", "-o", "jsonl"]) == 0
