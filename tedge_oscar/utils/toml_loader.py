import os

import tomlkit
from tomlkit import TOMLDocument


def load_document(path: str | os.PathLike) -> TOMLDocument:
    with open(path, "r", encoding="utf-8") as f:
        return tomlkit.load(f)


def load_dict(path: str | os.PathLike) -> dict:
    return load_document(path).unwrap()


def dump_document(document: TOMLDocument | dict) -> str:
    return tomlkit.dumps(document)
