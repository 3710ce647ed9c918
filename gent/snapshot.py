"""DOM snapshots — a compact structural view of the visible page.

The page-side walk (see `js_expressions.raw_dom_js`) reports every element
it meets together with a `hidden` flag; this module turns that raw tree
into `DomNode` values, dropping forbidden and hidden subtrees and keeping
only the attributes that help locate an element.

Serialized nodes use short keys to keep the model's context small:

    {"tag": "A", "id": "home", "cls": ["nav"], "attrs": {"href": "/"}, "chldn": ["Home"]}
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from gent.core import Page
from gent.js_expressions import FORBIDDEN_TAGS, raw_dom_js


class SnapshotError(Exception):
    """Raised when the snapshot root cannot be found."""

    pass


class ElementKind(Enum):
    """Element families that capture extra attributes."""

    TEXT_FIELD = "text_field"
    ANCHOR = "anchor"
    LABEL = "label"
    GENERIC = "generic"

    @classmethod
    def from_tag(cls, tag: str) -> ElementKind:
        return _KIND_BY_TAG.get(tag.upper(), cls.GENERIC)


_KIND_BY_TAG = {
    "INPUT": ElementKind.TEXT_FIELD,
    "TEXTAREA": ElementKind.TEXT_FIELD,
    "A": ElementKind.ANCHOR,
    "LABEL": ElementKind.LABEL,
}

_TEXT_FIELD_ATTRS = ("placeholder", "type", "name", "value")


@dataclass
class DomNode:
    """One captured element. Children are nodes or text leaves."""

    tag: str
    kind: ElementKind = ElementKind.GENERIC
    id: str | None = None
    classes: list[str] | None = None
    attrs: dict[str, str | None] | None = None
    children: list[Union[DomNode, str]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"tag": self.tag}
        if self.id:
            out["id"] = self.id
        if self.classes:
            out["cls"] = list(self.classes)
        if self.attrs is not None:
            out["attrs"] = dict(self.attrs)
        if self.children:
            out["chldn"] = [
                c if isinstance(c, str) else c.to_dict() for c in self.children
            ]
        return out


def is_forbidden(raw: dict) -> bool:
    """Forbidden elements are skipped along with their whole subtree."""
    return raw.get("tag", "").upper() in FORBIDDEN_TAGS or bool(raw.get("hidden"))


def capture_attrs(kind: ElementKind, raw_attrs: dict | None) -> dict[str, str | None] | None:
    raw_attrs = raw_attrs or {}
    if kind is ElementKind.TEXT_FIELD:
        return {k: raw_attrs[k] for k in _TEXT_FIELD_ATTRS if raw_attrs.get(k)}
    if kind is ElementKind.ANCHOR:
        return {"href": raw_attrs.get("href")}
    if kind is ElementKind.LABEL:
        return {"for": raw_attrs.get("for")}
    return None


def build_node(raw: dict) -> DomNode:
    """Build a node from a raw element, recursing in document order."""
    kind = ElementKind.from_tag(raw["tag"])
    node = DomNode(
        tag=raw["tag"],
        kind=kind,
        id=raw.get("id") or None,
        classes=list(raw.get("cls") or []) or None,
        attrs=capture_attrs(kind, raw.get("attrs")),
    )
    for child in raw.get("children") or []:
        if isinstance(child, str):
            if child.strip():
                node.children.append(child)
        elif not is_forbidden(child):
            node.children.append(build_node(child))
    return node


def build_snapshot(raw_root: dict | None, include_root: bool = False) -> list[DomNode]:
    """Turn a raw DOM walk into snapshot trees.

    With `include_root` the result is the root itself as a single tree;
    otherwise one tree per visible element child of the root (text
    directly under the root is not captured).
    """
    if raw_root is None:
        raise SnapshotError("Snapshot root not found")
    if is_forbidden(raw_root):
        return []
    if include_root:
        return [build_node(raw_root)]
    return [
        build_node(child)
        for child in raw_root.get("children") or []
        if isinstance(child, dict) and not is_forbidden(child)
    ]


def snapshot_to_json(nodes: list[DomNode]) -> str:
    return json.dumps([n.to_dict() for n in nodes], separators=(",", ":"), ensure_ascii=False)


async def take_snapshot(page: Page, root: str = "body", include_root: bool = False) -> list[DomNode]:
    """Snapshot the live page starting at the `root` CSS selector."""
    raw = await page.evaluate(raw_dom_js(root))
    if raw is None:
        raise SnapshotError(f"Snapshot root not found: {root}")
    return build_snapshot(raw, include_root)
