import json
from pathlib import Path
from typing import Any, Dict

from .md_export import export_summaries_md


def get_export_dir(root: str = "./exports") -> Path:
    """
    Get (and create) the digest export directory.
    Structure: {root}/digests/
    """
    path = Path(root) / "digests"
    path.mkdir(parents=True, exist_ok=True)
    return path


def _write_json(data: Any, path: Path):
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, sort_keys=True, ensure_ascii=False, default=str)


def export_summaries(view: Dict[str, Any], root: str = "./exports") -> Dict[str, str]:
    """Write summaries_<date>.json and summaries_<date>.md; returns their paths."""
    out_dir = get_export_dir(root)
    date = view.get("date")
    json_path = out_dir / f"summaries_{date}.json"
    md_path = out_dir / f"summaries_{date}.md"
    _write_json(view, json_path)
    export_summaries_md(view, md_path)
    return {"json": str(json_path), "markdown": str(md_path)}
