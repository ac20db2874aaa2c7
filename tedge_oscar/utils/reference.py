"""Parsing of OCI artifact references.

A reference has the form ``registry/path/to/repo[:tag][@algorithm:hex]``. The
first component is always the registry host, the way ``oras`` resolves
references, so ``parse_name`` is safe to use as a local directory name: it
never contains the host, the tag or the digest.
"""
import re

from tedge_oscar.errors import InvalidReferenceError
from tedge_oscar.models.reference import Reference

_DOMAIN_COMPONENT = r"(?:[a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9])"
DOMAIN_RE = re.compile(rf"^{_DOMAIN_COMPONENT}(?:\.{_DOMAIN_COMPONENT})*(?::[0-9]+)?$")
PATH_COMPONENT_RE = re.compile(r"^[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*$")
TAG_RE = re.compile(r"^[\w][\w.-]{0,127}$")
DIGEST_RE = re.compile(r"^[A-Za-z][A-Za-z0-9]*(?:[-_+.][A-Za-z][A-Za-z0-9]*)*:[0-9a-fA-F]{32,}$")

VERSION_SUFFIX_RE = re.compile(r"(?:@[\w+.-]+:[0-9a-fA-F]+|[-_:]v?\d+(?:\.\d+)*(?:[-+][0-9A-Za-z.-]+)?)$")


def parse_reference(ref: str) -> Reference:
    if not ref or not ref.strip():
        raise InvalidReferenceError(ref, "reference is empty")
    remainder, digest = ref, None
    if "@" in ref:
        remainder, digest = ref.split("@", 1)
        if not DIGEST_RE.match(digest):
            raise InvalidReferenceError(ref, f"invalid digest '{digest}'")

    registry, sep, path = remainder.partition("/")
    if not sep or not path:
        raise InvalidReferenceError(ref, "missing repository")
    if not DOMAIN_RE.match(registry):
        raise InvalidReferenceError(ref, f"invalid registry '{registry}'")

    tag = None
    if ":" in path:
        path, tag = path.rsplit(":", 1)
        if not TAG_RE.match(tag):
            raise InvalidReferenceError(ref, f"invalid tag '{tag}'")

    for component in path.split("/"):
        if not PATH_COMPONENT_RE.match(component):
            raise InvalidReferenceError(ref, f"invalid repository component '{component}'")

    return Reference(registry=registry, repository=path, tag=tag, digest=digest)


def parse_name(ref: str) -> str:
    """Return the repository path of ``ref`` without host, tag or digest."""
    return parse_reference(ref).repository


def trim_version(name: str) -> str:
    trimmed = VERSION_SUFFIX_RE.sub("", name)
    return trimmed or name
