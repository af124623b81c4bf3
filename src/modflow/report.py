"""Formatting helpers for presenting resolution and download results."""
from __future__ import annotations

import json
from typing import Dict, List, Optional, Sequence

from .models import Combo


def _format_combo(index: int, combo: Combo) -> str:
    extras: List[str] = []
    if combo.package.is_modpack:
        extras.append("modpack")
    if combo.version.download_url:
        extras.append(combo.version.download_url)
    meta = f" ({', '.join(extras)})" if extras else ""
    return f"  {index:>3}. {combo.package.full_name} {combo.version.version_number}{meta}"


def generate_text(combos: Sequence[Combo], title: str = "Install order:", root: Optional[Combo] = None) -> str:
    lines: List[str] = []
    if root is not None:
        lines.append(f"Requested {root.package.full_name} {root.version.version_number}")
    if not combos:
        lines.append("No dependencies to download.")
        return "\n".join(lines)
    lines.append(title)
    for index, combo in enumerate(combos, start=1):
        lines.append(_format_combo(index, combo))
    return "\n".join(lines)


def _combo_to_dict(combo: Combo) -> Dict[str, object]:
    return {
        "full_name": combo.package.full_name,
        "version": str(combo.version.version_number),
        "download_url": combo.version.download_url,
        "dependencies": list(combo.version.dependencies),
    }


def generate_json(combos: Sequence[Combo], root: Optional[Combo] = None) -> str:
    payload = {
        "requested": _combo_to_dict(root) if root is not None else None,
        "combos": [_combo_to_dict(combo) for combo in combos],
    }
    return json.dumps(payload, indent=2)
