"""
Structured XML content documents.

A content document has one element per locale directly below the root,
marked by a `language` attribute:

    <TextBlocks>
      <TextBlock language="en">
        <Title><![CDATA[Full width example]]></Title>
        <Paragraph>
          <Headline>...</Headline>
        </Paragraph>
      </TextBlock>
    </TextBlocks>

Values are addressed by xpaths with 1-based sibling indexes
(`Paragraph[1]/Headline[1]`).
"""
from __future__ import annotations

import re
from xml.etree import ElementTree as ET

from app.cms.errors import CmsXmlError, ErrorCode

_STEP_RE = re.compile(r"^([A-Za-z_][\w.-]*)(?:\[(\d+)\])?$")


def _parse_step(step: str) -> tuple[str, int]:
    m = _STEP_RE.match(step)
    if not m:
        raise CmsXmlError(ErrorCode.XML_INVALID, f"Invalid xpath step: {step!r}")
    index = int(m.group(2) or 1)
    if index < 1:
        raise CmsXmlError(ErrorCode.XML_INVALID, f"Xpath index must be >= 1: {step!r}")
    return m.group(1), index


def _collect(elem: ET.Element, prefix: str, out: dict[str, str]) -> None:
    counts: dict[str, int] = {}
    for child in elem:
        if not isinstance(child.tag, str):
            # comments and processing instructions
            continue
        counts[child.tag] = counts.get(child.tag, 0) + 1
        path = f"{prefix}{child.tag}[{counts[child.tag]}]"
        if len(child):
            _collect(child, path + "/", out)
        else:
            out[path] = (child.text or "").strip()


class XmlContent:
    def __init__(self, root: ET.Element):
        self.root = root

    @classmethod
    def from_string(cls, text: str | bytes) -> "XmlContent":
        try:
            root = ET.fromstring(text)
        except ET.ParseError as e:
            raise CmsXmlError(ErrorCode.XML_MALFORMED, f"Malformed XML content: {e}") from e
        return cls(root)

    @property
    def type_name(self) -> str:
        return self.root.tag

    def locales(self) -> list[str]:
        return [c.get("language", "") for c in self.root if c.get("language")]

    def _locale_node(self, locale: str) -> ET.Element | None:
        for child in self.root:
            if child.get("language") == locale:
                return child
        return None

    def has_locale(self, locale: str) -> bool:
        return self._locale_node(locale) is not None

    def add_locale(self, locale: str, element_name: str | None = None) -> ET.Element:
        node = self._locale_node(locale)
        if node is not None:
            return node
        if element_name is None:
            existing = [c for c in self.root if c.get("language")]
            element_name = existing[0].tag if existing else self.root.tag.rstrip("s") or "Content"
        return ET.SubElement(self.root, element_name, {"language": locale})

    def get_values(self, locale: str) -> dict[str, str]:
        node = self._locale_node(locale)
        if node is None:
            return {}
        out: dict[str, str] = {}
        _collect(node, "", out)
        return out

    def get_value(self, locale: str, xpath: str) -> str | None:
        node = self._locale_node(locale)
        if node is None:
            return None
        for step in xpath.strip("/").split("/"):
            name, index = _parse_step(step)
            matches = [c for c in node if c.tag == name]
            if len(matches) < index:
                return None
            node = matches[index - 1]
        return (node.text or "").strip()

    def set_value(self, locale: str, xpath: str, value: str) -> None:
        """
        Set the value at `xpath`, creating missing elements on the way.

        Indexes may address at most one element past the last existing
        sibling.
        """
        node = self.add_locale(locale)
        for step in xpath.strip("/").split("/"):
            name, index = _parse_step(step)
            matches = [c for c in node if c.tag == name]
            if len(matches) >= index:
                node = matches[index - 1]
            elif len(matches) == index - 1:
                node = ET.SubElement(node, name)
            else:
                raise CmsXmlError(
                    ErrorCode.XML_INVALID,
                    f"Cannot create {step!r}: only {len(matches)} sibling(s) exist",
                )
        node.text = value

    def to_string(self) -> str:
        return ET.tostring(self.root, encoding="unicode")
