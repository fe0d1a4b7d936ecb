from __future__ import annotations

import logging
import re
from collections.abc import Mapping

from app.cms.modules.usergenerated.xml_content import XmlContent
from app.cms.sessions import RequestContext

logger = logging.getLogger(__name__)

_STEP_RE = re.compile(r"([^/\[]+)(?:\[(\d+)\])?")


def _xpath_key(xpath: str) -> tuple[tuple[str, int], ...]:
    return tuple((name, int(index or 1)) for name, index in _STEP_RE.findall(xpath))


class FormSession:
    """
    Edits XML content on behalf of a (possibly anonymous) form submitter.
    """

    def __init__(self, context: RequestContext):
        self.context = context

    def get_values(self, content: XmlContent, locale: str | None = None) -> dict[str, str]:
        """All simple values of `content` in `locale`, keyed by xpath."""
        return content.get_values(locale or self.context.locale)

    def set_values(self, content: XmlContent, locale: str | None, values: Mapping[str, str]) -> XmlContent:
        loc = locale or self.context.locale
        # parents before children, lower indexes first
        for xpath in sorted(values, key=_xpath_key):
            content.set_value(loc, xpath, values[xpath])
        logger.debug("Form session user=%s set %d value(s) in %s", self.context.user_name, len(values), loc)
        return content
