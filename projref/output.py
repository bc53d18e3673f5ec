"""JSON serialisation of conversion results."""

from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path

from projref import __version__
from projref.config import ConversionResult


def build_report(result: ConversionResult) -> dict:
    """Turn a ConversionResult into a JSON-ready dict."""
    data = asdict(result)
    data["metadata"] = {
        **result.metadata,
        "projref_version": __version__,
        "converted_at": datetime.now(timezone.utc).isoformat(),
    }
    data["stats"] = {
        "processed": len(result.processed),
        "conversions": len(result.conversions),
        "unresolved": sum(len(v) for v in result.unresolved.values()),
        "registered": len(result.registered),
        "cycles": len(result.cycles),
    }
    return data


def write_report(result: ConversionResult, output_path: str) -> None:
    """Write the conversion report to a JSON file."""
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(build_report(result), f, indent=2, default=str)
