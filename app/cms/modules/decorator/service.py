from __future__ import annotations

import logging
import posixpath
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from xml.etree import ElementTree as ET

from app.cms.errors import CmsError, CmsXmlError, ErrorCode
from app.cms.storage import Storage

logger = logging.getLogger(__name__)

CONFIGURATION_LOCALE = "en"

XPATH_DECORATION = "decoration"
XPATH_FILENAME = "filename"
XPATH_MARKFIRST = "markfirst"
XPATH_NAME = "name"
XPATH_POSTTEXT = "posttext"
XPATH_POSTTEXTFIRST = "posttextfirst"
XPATH_PRETEXT = "pretext"
XPATH_PRETEXTFIRST = "pretextfirst"
XPATH_USELOCALE = "uselocale"

MACRO_DECORATION = "${decoration}"
MACRO_DECORATIONKEY = "${decorationkey}"
MACRO_LOCALE = "${locale}"

LIST_DELIMITER = "|"


def _local_name(tag: str) -> str:
    # strip "{namespace}" prefixes
    return tag.rsplit("}", 1)[-1].lower()


def _children(elem: ET.Element, name: str) -> list[ET.Element]:
    return [c for c in elem if _local_name(c.tag) == name]


def _text(elem: ET.Element, name: str, strip: bool = True) -> str:
    found = _children(elem, name)
    if not found:
        return ""
    text = found[0].text or ""
    return text.strip() if strip else text


@dataclass
class DecorationObject:
    """A single word to decorate, with the definition that styles it."""

    decoration_key: str
    decoration: str
    definition: "DecorationDefinition"
    locale: str | None = None

    def _substitute(self, template: str) -> str:
        out = template.replace(MACRO_DECORATION, self.decoration)
        out = out.replace(MACRO_DECORATIONKEY, self.decoration_key)
        out = out.replace(MACRO_LOCALE, self.locale or "")
        return out

    def get_content_decoration(self, text: str, first: bool = False) -> str:
        d = self.definition
        if first and d.mark_first:
            pre, post = d.pretext_first, d.posttext_first
        else:
            pre, post = d.pretext, d.posttext
        return self._substitute(pre) + text + self._substitute(post)


class DecorationBundle(Mapping[str, DecorationObject]):
    """Decorations keyed case-insensitively by the word they decorate."""

    def __init__(self, locale: str | None = None):
        self.locale = locale
        self._entries: dict[str, DecorationObject] = {}

    def __getitem__(self, key: str) -> DecorationObject:
        return self._entries[key.lower()]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def put(self, key: str, value: DecorationObject) -> None:
        self._entries[key.lower()] = value

    def put_all(self, entries: Mapping[str, DecorationObject]) -> None:
        for key, value in entries.items():
            self.put(key, value)

    def get_all(self) -> dict[str, DecorationObject]:
        return dict(self._entries)

    def __repr__(self) -> str:
        return f"DecorationBundle(locale={self.locale!r}, keys={sorted(self._entries)!r})"


def parse_decoration_list(text: str) -> list[tuple[str, str]]:
    """
    Parse a decoration list file: one `key|description` per line.
    """
    entries: list[tuple[str, str]] = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition(LIST_DELIMITER)
        key = key.strip()
        if not key:
            continue
        entries.append((key, value.strip() if sep else ""))
    return entries


def localized_filename(filename: str, locale: str) -> str:
    base, ext = posixpath.splitext(filename)
    return f"{base}_{locale}{ext}"


@dataclass
class DecorationDefinition:
    name: str = ""
    mark_first: bool = False
    pretext: str = ""
    posttext: str = ""
    pretext_first: str = ""
    posttext_first: str = ""
    configuration_file: str = ""

    def _resolve_file(self, storage: Storage, locale: str | None) -> str:
        if locale:
            candidate = localized_filename(self.configuration_file, locale)
            if storage.exists(candidate):
                return candidate
        return self.configuration_file

    def create_decoration_bundle(self, storage: Storage, locale: str | None) -> DecorationBundle:
        bundle = DecorationBundle(locale)
        if not self.configuration_file:
            logger.warning("Decoration %r has no list file", self.name)
            return bundle
        path = self._resolve_file(storage, locale)
        if not storage.exists(path):
            raise CmsError(ErrorCode.NOT_FOUND, f"Decoration list not found: {path}")
        for key, value in parse_decoration_list(storage.read_text(path)):
            bundle.put(key, DecorationObject(key, value, self, locale))
        logger.debug("Decoration %r: %d entries from %s", self.name, len(bundle), path)
        return bundle


def _configuration_node(root: ET.Element) -> ET.Element:
    """
    Return the element holding the decoration fields.

    Content documents wrap fields in one element per locale; the configuration
    locale is used, falling back to the first locale node. Plain documents keep
    the fields directly under the root.
    """
    locale_nodes = [c for c in root if c.get("language")]
    for node in locale_nodes:
        if node.get("language") == CONFIGURATION_LOCALE:
            return node
    if locale_nodes:
        return locale_nodes[0]
    return root


def parse_decoration_definitions(xml: str | bytes) -> tuple[bool, list[DecorationDefinition]]:
    try:
        root = ET.fromstring(xml)
    except ET.ParseError as e:
        raise CmsXmlError(ErrorCode.XML_MALFORMED, f"Malformed decorator configuration: {e}") from e

    node = _configuration_node(root)
    use_locale = _text(node, XPATH_USELOCALE) == "true"
    definitions: list[DecorationDefinition] = []
    for dec in _children(node, XPATH_DECORATION):
        definitions.append(
            DecorationDefinition(
                name=_text(dec, XPATH_NAME),
                mark_first=_text(dec, XPATH_MARKFIRST) == "true",
                pretext=_text(dec, XPATH_PRETEXT, strip=False),
                posttext=_text(dec, XPATH_POSTTEXT, strip=False),
                pretext_first=_text(dec, XPATH_PRETEXTFIRST, strip=False),
                posttext_first=_text(dec, XPATH_POSTTEXTFIRST, strip=False),
                configuration_file=_text(dec, XPATH_FILENAME),
            )
        )
    return use_locale, definitions


class DecoratorConfiguration:
    def __init__(self, storage: Storage, config_file: str | None = None, locale: str | None = None):
        self.storage = storage
        self.config_file = config_file
        self.locale = locale
        self._decorations = DecorationBundle(locale)
        self._definitions: list[DecorationDefinition] = []
        if config_file:
            self._init(config_file)

    @property
    def decorations(self) -> DecorationBundle:
        return self._decorations

    def set_decorations(self, decorations: DecorationBundle) -> None:
        self._decorations = decorations

    @property
    def definitions(self) -> list[DecorationDefinition]:
        return list(self._definitions)

    def add_decorations(self, definition: DecorationDefinition) -> None:
        bundle = definition.create_decoration_bundle(self.storage, CONFIGURATION_LOCALE)
        self._decorations.put_all(bundle.get_all())
        self._definitions.append(definition)

    def _merge(self, definitions: Iterable[DecorationDefinition]) -> None:
        for definition in definitions:
            bundle = definition.create_decoration_bundle(self.storage, self.locale)
            # merge it to the already existing decorations
            self._decorations.put_all(bundle.get_all())
            self._definitions.append(definition)

    def _init(self, config_file: str) -> None:
        if not self.storage.exists(config_file):
            raise CmsError(ErrorCode.NOT_FOUND, f"Decorator configuration not found: {config_file}")
        use_locale, definitions = parse_decoration_definitions(self.storage.read_bytes(config_file))
        if not use_locale:
            # locale independent bundles
            self.locale = None
            self._decorations.locale = None
        self._merge(definitions)
        logger.info(
            "Loaded decorator configuration %s: %d definitions, %d decorations",
            config_file,
            len(definitions),
            len(self._decorations),
        )
