"""
Minimal recursive-descent XML parser for Collada documents.

Produces a plain element tree (tag, attributes, children, text). Namespaces,
DTDs and processing instructions are ignored. Malformed markup is
recovered from on a best-effort basis; it is never validated.
"""

import html
import re
from dataclasses import dataclass, field
from typing import Iterator

_PROLOG_RE = re.compile(r"<\?.*?\?>", re.DOTALL)
_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)
_DOCTYPE_RE = re.compile(r"<!DOCTYPE[^>]*>", re.IGNORECASE)
_NAME_RE = re.compile(r"[^\s/>]+")
_ATTR_RE = re.compile(r"""([^\s=/>]+)\s*=\s*(?:"([^"]*)"|'([^']*)')""")
_BARE_ATTR_RE = re.compile(r"[^\s/>]+")
_WS_RE = re.compile(r"\s*")

_CDATA_OPEN = "<![CDATA["
_CDATA_CLOSE = "]]>"


@dataclass
class XmlElement:
    tag: str
    attributes: dict[str, str] = field(default_factory=dict)
    children: list["XmlElement"] = field(default_factory=list)
    text: str = ""

    def get(self, name: str, default: str | None = None) -> str | None:
        return self.attributes.get(name, default)

    def find(self, tag: str) -> "XmlElement | None":
        """First direct child with the given tag."""
        for child in self.children:
            if child.tag == tag:
                return child
        return None

    def findall(self, tag: str) -> list["XmlElement"]:
        """All direct children with the given tag."""
        return [c for c in self.children if c.tag == tag]

    def iter(self, tag: str | None = None) -> Iterator["XmlElement"]:
        """Depth-first walk over all descendants (not self)."""
        for child in self.children:
            if tag is None or child.tag == tag:
                yield child
            yield from child.iter(tag)


class _Parser:
    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def skip_ws(self) -> None:
        self.pos = _WS_RE.match(self.text, self.pos).end()

    def parse_document(self) -> XmlElement | None:
        text = self.text
        while True:
            lt = text.find("<", self.pos)
            if lt == -1:
                return None
            self.pos = lt
            if text.startswith("</", lt) or text.startswith("<!", lt):
                gt = text.find(">", lt)
                self.pos = len(text) if gt == -1 else gt + 1
                continue
            element = self.parse_element()
            if element is not None:
                return element
            self.pos = lt + 1

    def parse_element(self) -> XmlElement | None:
        text = self.text
        name_match = _NAME_RE.match(text, self.pos + 1)
        if name_match is None:
            return None
        element = XmlElement(tag=name_match.group(0))
        self.pos = name_match.end()

        # Attributes
        while self.pos < len(text):
            self.skip_ws()
            if text.startswith("/>", self.pos):
                self.pos += 2
                return element
            if text.startswith(">", self.pos):
                self.pos += 1
                break
            attr = _ATTR_RE.match(text, self.pos)
            if attr is not None:
                value = attr.group(2) if attr.group(2) is not None else attr.group(3)
                element.attributes[attr.group(1)] = html.unescape(value)
                self.pos = attr.end()
                continue
            bare = _BARE_ATTR_RE.match(text, self.pos)
            self.pos = bare.end() if bare else self.pos + 1
        else:
            return element

        # Content
        parts: list[str] = []
        while self.pos < len(text):
            lt = text.find("<", self.pos)
            if lt == -1:
                parts.append(html.unescape(text[self.pos:]))
                self.pos = len(text)
                break
            if lt > self.pos:
                parts.append(html.unescape(text[self.pos:lt]))
            self.pos = lt

            if text.startswith("</", lt):
                gt = text.find(">", lt)
                self.pos = len(text) if gt == -1 else gt + 1
                break
            if text.startswith(_CDATA_OPEN, lt):
                start = lt + len(_CDATA_OPEN)
                end = text.find(_CDATA_CLOSE, start)
                if end == -1:
                    end = len(text)
                parts.append(text[start:end])
                self.pos = min(len(text), end + len(_CDATA_CLOSE))
                continue

            child = self.parse_element()
            if child is None:
                parts.append("<")
                self.pos = lt + 1
            else:
                element.children.append(child)

        element.text = "".join(parts).strip()
        return element


def parse_xml(text: str) -> XmlElement | None:
    """Parse a complete document and return its root element (or None)."""
    text = _PROLOG_RE.sub("", text)
    text = _COMMENT_RE.sub("", text)
    text = _DOCTYPE_RE.sub("", text)
    return _Parser(text).parse_document()
