"""
FILE DESCRIPTION: Example page analyzers shipped with the service.
KEY FUNCTIONS/CLASSES: link_count_plugin, load_time_plugin, content_plugin, default_plugins
"""

import hashlib
from collections import Counter
from typing import Any, Dict, List

from plugins.models import PluginDescriptor

# === LINK COUNT ===

def _count_links(page, load_time) -> Dict[str, Any]:
    anchors = page.select("a[href]")
    return {"links": len(anchors), "outbound": len(page.links)}

def _summarize_links(records: List[Dict[str, Any]]) -> Dict[str, Any]:
    total = sum(r["links"] for r in records)
    return {
        "pages": len(records),
        "totalLinks": total,
        "avgLinks": round(total / len(records), 2) if records else 0,
        "maxLinks": max((r["links"] for r in records), default=0),
    }

def link_count_plugin() -> PluginDescriptor:
    return PluginDescriptor(name="links", evaluate=_count_links, summarize=_summarize_links)

# === LOAD TIME ===

def _record_load_time(page, load_time) -> Dict[str, Any]:
    return {"loadTime": load_time, "bytes": len(page.html or "")}

def _summarize_load_time(records: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Mean, min and max load time in milliseconds over the successful pages."""
    if not records:
        return {"pages": 0, "avgLoadTime": None, "minLoadTime": None, "maxLoadTime": None}
    times = [r["loadTime"] for r in records]
    return {
        "pages": len(records),
        "avgLoadTime": round(sum(times) / len(times), 2),
        "minLoadTime": min(times),
        "maxLoadTime": max(times),
        "totalBytes": sum(r["bytes"] for r in records),
    }

def load_time_plugin() -> PluginDescriptor:
    return PluginDescriptor(name="load_time", evaluate=_record_load_time, summarize=_summarize_load_time)

# === CONTENT ===

def _extract_content(page, load_time) -> Dict[str, Any]:
    """
    FLOW: Strips script/style from the parsed DOM -> Reads title and meta description ->
    Hashes the tag sequence into a structural digest (pages sharing a template share it).
    """
    soup = page.soup
    title = soup.title.get_text(strip=True) if soup.title else None
    meta = soup.find("meta", attrs={"name": "description"})
    description = meta.get("content", "").strip() if meta else None

    tags = [t.name for t in soup.find_all(True) if t.name not in ("script", "style")]
    return {
        "title": title or None,
        "metaDescription": description or None,
        "h1": len(soup.find_all("h1")),
        "structuralDigest": hashlib.sha256("".join(tags).encode("utf-8")).hexdigest(),
    }

def _summarize_content(records: List[Dict[str, Any]]) -> Dict[str, Any]:
    titles = Counter(r["title"] for r in records if r["title"])
    return {
        "pages": len(records),
        "missingTitle": sum(1 for r in records if not r["title"]),
        "missingMetaDescription": sum(1 for r in records if not r["metaDescription"]),
        "duplicateTitles": sorted(t for t, n in titles.items() if n > 1),
        "templates": len({r["structuralDigest"] for r in records}),
    }

def content_plugin() -> PluginDescriptor:
    return PluginDescriptor(name="content", evaluate=_extract_content, summarize=_summarize_content)

def default_plugins() -> List[PluginDescriptor]:
    return [link_count_plugin(), load_time_plugin(), content_plugin()]
