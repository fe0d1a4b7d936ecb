#!/usr/bin/env python3
"""Apply the text decoration configuration to an HTML file.

Usage:
  python scripts/decorate.py --config decorations/config.xml page.html > out.html

The configuration and its decoration lists are read from the configured
storage backend (STORAGE_BACKEND / STORAGE_ROOT); the input file is local.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.cms.config import load_config
from app.cms.errors import CmsError
from app.cms.modules.decorator.html import HtmlDecorator
from app.cms.modules.decorator.service import DecoratorConfiguration
from app.cms.storage import storage_from_config


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--config", help="Storage key of the decorator configuration (default: CMS_DECORATOR_CONFIG)")
    parser.add_argument("--locale", default=None, help="Locale for localized decoration lists")
    parser.add_argument("input", help="HTML file to decorate")
    args = parser.parse_args()

    config = load_config()
    config_file = args.config or config.get("CMS_DECORATOR_CONFIG")
    if not config_file:
        print("No decorator configuration given (--config or CMS_DECORATOR_CONFIG).", file=sys.stderr)
        return 2

    try:
        configuration = DecoratorConfiguration(storage_from_config(config), config_file, args.locale)
    except CmsError as e:
        print(f"Cannot load decorator configuration [{e.code}]: {e}", file=sys.stderr)
        return 1

    html = Path(args.input).read_text(encoding="utf-8")
    sys.stdout.write(HtmlDecorator(configuration).decorate(html))
    return 0


if __name__ == "__main__":
    sys.exit(main())
