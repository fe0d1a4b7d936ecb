from __future__ import annotations

import re

from app.cms.modules.decorator.service import DecorationBundle, DecoratorConfiguration

_TAG_RE = re.compile(r"(<!--.*?-->|<[^>]*>|&#?\w+;)", re.DOTALL)
_TAG_NAME_RE = re.compile(r"<\s*(/?)\s*([a-zA-Z][a-zA-Z0-9:-]*)")

EXCLUDED_ELEMENTS = frozenset({"a", "abbr", "acronym", "code", "pre", "script", "style", "textarea"})


class HtmlDecorator:
    """
    Applies a decoration bundle to the text nodes of an HTML fragment.

    Markup and character entities are passed through untouched, and so is
    text inside the excluded elements. Keys match whole words only, ignoring case. When a definition
    asks to mark the first occurrence, only the first hit of each key in one
    `decorate` call gets the "first" pre/post text.
    """

    def __init__(self, configuration: DecoratorConfiguration | DecorationBundle, excluded=EXCLUDED_ELEMENTS):
        if isinstance(configuration, DecoratorConfiguration):
            self.bundle = configuration.decorations
        else:
            self.bundle = configuration
        self.excluded = frozenset(excluded)
        self._pattern = self._build_pattern()

    def _build_pattern(self) -> re.Pattern[str] | None:
        keys = sorted(self.bundle.keys(), key=len, reverse=True)
        if not keys:
            return None
        alternation = "|".join(re.escape(k) for k in keys)
        return re.compile(rf"(?<!\w)({alternation})(?!\w)", re.IGNORECASE)

    def _decorate_text(self, text: str, used: set[str]) -> str:
        if self._pattern is None:
            return text

        def _replace(m: re.Match[str]) -> str:
            word = m.group(1)
            key = word.lower()
            obj = self.bundle.get(key)
            if obj is None:
                return word
            first = key not in used
            used.add(key)
            return obj.get_content_decoration(word, first=first)

        return self._pattern.sub(_replace, text)

    def decorate(self, html: str) -> str:
        if not html or self._pattern is None:
            return html
        used: set[str] = set()
        open_excluded: list[str] = []
        out: list[str] = []
        for part in _TAG_RE.split(html):
            if not part:
                continue
            if part.startswith("&"):
                # character entity
                out.append(part)
            elif part.startswith("<"):
                m = _TAG_NAME_RE.match(part)
                if m:
                    closing, name = m.group(1) == "/", m.group(2).lower()
                    if name in self.excluded:
                        if closing:
                            if name in open_excluded:
                                # drop everything opened after the matching tag
                                del open_excluded[len(open_excluded) - 1 - open_excluded[::-1].index(name):]
                        elif not part.rstrip().endswith("/>"):
                            open_excluded.append(name)
                out.append(part)
            elif open_excluded:
                out.append(part)
            else:
                out.append(self._decorate_text(part, used))
        return "".join(out)
