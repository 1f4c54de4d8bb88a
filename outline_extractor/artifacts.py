"""JSON serialization of heading outlines."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Union

from .layout_types import HeadingInfo, ProcessingResult


def serialize_result(result: ProcessingResult) -> str:
    payload: Dict[str, Any] = result.to_outline()
    return json.dumps(payload, ensure_ascii=False, indent=2) + "\n"


def write_result_json(*, result: ProcessingResult, out_file: Union[str, Path]) -> Path:
    path = Path(out_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(serialize_result(result), encoding="utf-8")
    return path


def _heading_from_dict(entry: Dict[str, Any]) -> HeadingInfo:
    bbox = entry.get("bbox") or (0, 0, 0, 0)
    return HeadingInfo(
        level=str(entry["level"]),
        text=str(entry["text"]),
        page=int(entry["page"]),
        bbox=tuple(int(v) for v in bbox),  # type: ignore[arg-type]
        confidence=float(entry.get("confidence", 0.0)),
    )


def parse_result_json(text: str) -> ProcessingResult:
    """Rebuild a result from its JSON outline; headings keep their order."""
    payload = json.loads(text)
    if not isinstance(payload, dict) or not isinstance(payload.get("outline"), list):
        raise ValueError("Outline JSON must be an object with an 'outline' list")
    return ProcessingResult(
        title=str(payload.get("title", "")),
        headings=[_heading_from_dict(entry) for entry in payload["outline"]],
        success=True,
    )


def read_result_json(path: Union[str, Path]) -> ProcessingResult:
    return parse_result_json(Path(path).read_text(encoding="utf-8"))
