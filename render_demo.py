"""
Example: render stored highlights onto an article's markup.

Usage:
    python3 render_demo.py --markup article.html --anchors highlights.json --out rendered.html

The anchors file holds a JSON list of objects with `quote`, and optionally
`id`, `global_start`, `global_end`, `color` and `created_at` (ISO format).
"""

import argparse
import json
import logging
from datetime import datetime
from pathlib import Path

from readlater.anchoring import Anchor, HighlightColor, canonical_text, parse_markup, render_highlights


def setup_logging(log_dir: Path):
    log_dir.mkdir(exist_ok=True)

    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_dir / "render.log", encoding="utf-8"),
        ],
        force=True,
    )


def anchor_from_dict(raw: dict, index: int, document_id: str) -> Anchor:
    created_at = raw.get("created_at")
    return Anchor(
        id=str(raw.get("id") or f"demo-{index}"),
        document_id=document_id,
        quote=raw["quote"],
        global_start=raw.get("global_start"),
        global_end=raw.get("global_end"),
        color=HighlightColor(raw.get("color", "yellow")),
        created_at=datetime.fromisoformat(created_at) if created_at else datetime.utcnow(),
    )


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--markup", required=True, type=Path, help="Path to the article markup")
    parser.add_argument("--anchors", required=True, type=Path, help="Path to a JSON list of highlights")
    parser.add_argument("--out", default=Path("./rendered.html"), type=Path, help="Where to write the result")
    parser.add_argument("--strict", action="store_true", help="Fail on tree invariant violations")
    parser.add_argument("--log-dir", default=Path("./logs"), type=Path, help="Log directory")
    args = parser.parse_args()

    setup_logging(args.log_dir)
    if not args.markup.exists():
        raise FileNotFoundError(f"Markup not found: {args.markup}")

    markup = args.markup.read_text(encoding="utf-8")
    with args.anchors.open("r", encoding="utf-8") as f:
        raw_anchors = json.load(f)
    anchors = [anchor_from_dict(raw, i, args.markup.stem) for i, raw in enumerate(raw_anchors)]

    rendered = render_highlights(markup, anchors, strict=args.strict)
    args.out.write_text(rendered, encoding="utf-8")

    projection_length = len(canonical_text(parse_markup(markup)))
    print(f"Rendered {len(anchors)} highlights over {projection_length} characters")
    print(f"Output written to {args.out}")


if __name__ == "__main__":
    main()
