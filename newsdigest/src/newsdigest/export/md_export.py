from pathlib import Path
from typing import List, Dict, Any


def _group_lines(entry: Dict[str, Any]) -> List[str]:
    lines = [f"### {entry.get('value')} ({entry.get('items_count', 0)} items)"]
    for bullet in entry.get("bullets", []):
        lines.append(f"- {bullet}")
    links = entry.get("top_links") or []
    if links:
        lines.append("")
        lines.append("Top links:")
        for link in links:
            source = link.get("source") or "Unknown"
            lines.append(f"  - {source}: [{link.get('title')}]({link.get('url')})")
    lines.append("")
    return lines


def export_summaries_md(view: Dict[str, Any], path: Path):
    """Export the day's group summaries to Markdown."""
    lines = []
    lines.append(f"# News Digest: {view.get('date')}")
    lines.append("")

    for heading, key in (("Tickers", "tickers"), ("Topics", "topics")):
        lines.append(f"## {heading}")
        entries = view.get(key) or []
        if not entries:
            lines.append(f"- No {key} summarized yet.")
            lines.append("")
            continue
        for entry in entries:
            lines.extend(_group_lines(entry))

    with open(path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines))
