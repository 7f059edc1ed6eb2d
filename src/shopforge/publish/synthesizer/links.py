"""
Link rewriting for synthesized pages.

Page links are resolved against the normalized layout, so the generated site
only ever routes to paths that exist. User-supplied URLs survive only when
they use a scheme that is safe to put into an ``href``.
"""

from __future__ import annotations

import copy
from typing import Any

from shopforge.core.layout import SiteLayout
from shopforge.core.strings import slugify

SAFE_URL_PREFIXES = ("http://", "https://", "mailto:", "tel:")
UNSAFE_HREF = "#"


class LinkResolver:
    """Map layout link values to hrefs for a hash-routed site."""

    def __init__(self, layout: SiteLayout):
        self._home = layout.home.path
        self._paths = {page.path for page in layout.pages}
        self._by_slug: dict[str, str] = {}
        for page in layout.pages:
            self._by_slug.setdefault(slugify(page.name), page.path)
            tail = page.path.rstrip("/").rsplit("/", 1)[-1]
            if tail:
                self._by_slug.setdefault(tail, page.path)

    def page_path(self, page_name: Any) -> str:
        """Normalized path of the named page, the home page when unknown."""
        return self._by_slug.get(slugify(page_name), self._home)

    def href(self, link: Any) -> str:
        """
        Resolve a link to an href.

        Accepts ``{"type": "page", "pageName": ...}``, ``{"pageName": ...}``,
        ``{"url": ...}`` or a bare string.
        """
        if isinstance(link, dict):
            if link.get("type") == "page" or link.get("pageName"):
                return self._route(self.page_path(link.get("pageName") or link.get("text")))
            target = link.get("url") or link.get("href") or link.get("link")
            return self.href(target) if isinstance(target, str) else UNSAFE_HREF
        if not isinstance(link, str):
            return UNSAFE_HREF

        target = link.strip()
        if not target:
            return UNSAFE_HREF
        if target.startswith("#/"):
            return self._route(self._internal_path(target[1:]))
        if target.startswith("/"):
            return self._route(self._internal_path(target))
        if target.startswith("#"):
            return target
        if target.lower().startswith(SAFE_URL_PREFIXES):
            return target
        return UNSAFE_HREF

    def _internal_path(self, raw: str) -> str:
        path = "/" + raw.split("?", 1)[0].strip("/")
        if path in self._paths:
            return path
        tail = path.rsplit("/", 1)[-1]
        return self._by_slug.get(slugify(tail), self._home)

    @staticmethod
    def _route(path: str) -> str:
        return "#" + path

    # =========================================================================
    # Section rewriting
    # =========================================================================

    def rewrite_section(self, section: dict[str, Any]) -> dict[str, Any]:
        """
        Return a copy of ``section`` with resolved hrefs.

        ``links[*].href``, ``items[*].href`` and ``buttonHref`` are set; the
        original link fields are left in place for reference but renderers only
        read the resolved ones.
        """
        doc = copy.deepcopy(section)

        links = doc.get("links")
        if isinstance(links, list):
            rewritten = []
            for link in links:
                if isinstance(link, str):
                    link = {"text": link, "pageName": link}
                if not isinstance(link, dict):
                    continue
                text = link.get("text") or link.get("pageName") or link.get("label") or ""
                rewritten.append({**link, "text": str(text), "href": self.href(link)})
            doc["links"] = rewritten

        if "buttonLink" in doc:
            doc["buttonHref"] = self.href(doc["buttonLink"])
        elif doc.get("buttonText"):
            doc["buttonHref"] = UNSAFE_HREF

        items = doc.get("items")
        if isinstance(items, list):
            doc["items"] = [
                {**item, "href": self.href(_item_link(item))} if isinstance(item, dict) else item
                for item in items
            ]
        return doc


def _item_link(item: dict[str, Any]) -> Any:
    for key in ("link", "buttonLink", "href", "url"):
        if item.get(key):
            return item[key]
    return None
