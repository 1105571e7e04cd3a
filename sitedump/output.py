"""Writing a :class:`ScrapeResult` to disk as JSON."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Union

from sitedump.models import ScrapeResult


def ensure_dir(p: Path) -> None:
    p.mkdir(parents=True, exist_ok=True)


def write_result(result: ScrapeResult, output_path: Union[str, Path], *, pretty: bool = True) -> Path:
    """Write ``result`` to ``output_path``; image paths become relative to its directory."""
    path = Path(output_path)
    ensure_dir(path.parent)
    base = path.parent.resolve()

    def relative(local_path: str) -> str:
        return Path(os.path.relpath(Path(local_path).resolve(), base)).as_posix()

    payload = result.to_dict(path_mapper=relative)
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2 if pretty else None), encoding="utf-8")
    return path
