from __future__ import annotations

"""Competition registry and YAML loader.

- Competitions can be switched on/off without code changes.
- Disabled entries are skipped silently.
- Codes must look like football-data.org competition codes (PL, CL, BSA...).
"""

import re
from dataclasses import dataclass
from pathlib import Path

import yaml


COMPETITION_CODE = re.compile(r"^[A-Z0-9]{2,5}$")


def validate_code(code: str) -> str:
    code = (code or "").strip()
    if not COMPETITION_CODE.match(code):
        raise ValueError(f"competition must be an uppercase code like PL, CL (got {code!r})")
    return code


@dataclass(frozen=True, slots=True)
class CompetitionEntry:
    code: str
    enabled: bool = True
    name: str | None = None


@dataclass(frozen=True, slots=True)
class CompetitionRegistry:
    competitions: list[CompetitionEntry]

    def enabled_codes(self) -> list[str]:
        return [c.code for c in self.competitions if c.enabled]


def load_competitions_yaml(path: Path) -> CompetitionRegistry:
    raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict) or not isinstance(raw.get("competitions"), dict):
        raise ValueError("Invalid competitions.yaml: expected top-level mapping with 'competitions'.")

    entries: list[CompetitionEntry] = []
    for code, cfg in raw["competitions"].items():
        cfg = cfg if isinstance(cfg, dict) else {}
        entries.append(
            CompetitionEntry(
                code=validate_code(str(code)),
                enabled=bool(cfg.get("enabled", True)),
                name=str(cfg["name"]) if cfg.get("name") is not None else None,
            )
        )
    return CompetitionRegistry(competitions=entries)
