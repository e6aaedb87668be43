"""OCR script routing: resolve a script name to its Tesseract code, Unicode ranges and language-data locations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .script_detect import MYANMAR_RANGES
from .utils import InvalidInputError

# Canonical profile id -> profile dict
SCRIPT_PROFILES: dict[str, dict[str, Any]] = {
    "myanmar": {
        "id": "myanmar",
        "display_name": "Myanmar",
        "tesseract_lang": "mya",
        "unicode_ranges": MYANMAR_RANGES,
        "lang_paths": (
            "https://cdn.jsdelivr.net/npm/tesseract.js@4.0.2/lang-data/",
            "https://tessdata.projectnaptha.com/4.0.0/",
            "https://raw.githubusercontent.com/naptha/tessdata/gh-pages/4.0.0/",
        ),
    },
}

# Alias (e.g. "mya", "my") -> canonical profile id
SCRIPT_ALIASES: dict[str, str] = {
    "mya": "myanmar",
    "my": "myanmar",
    "burmese": "myanmar",
}


@dataclass(frozen=True)
class ScriptProfile:
    """Resolved OCR target: script ranges, Tesseract code and data locations."""

    id: str
    display_name: str
    tesseract_lang: str
    unicode_ranges: tuple[tuple[int, int], ...]
    lang_paths: tuple[str, ...]


def resolve_script_profile(name: str | None = None) -> ScriptProfile:
    """Resolve a script name or alias to its profile.

    ``None`` or an empty name resolves to Myanmar.
    """
    normalized = (name or "myanmar").strip().lower()
    profile_id = normalized if normalized in SCRIPT_PROFILES else SCRIPT_ALIASES.get(normalized)
    if profile_id is None:
        raise InvalidInputError(f"Unsupported OCR script: {name}", reason="unsupported_script")
    profile = SCRIPT_PROFILES[profile_id]
    return ScriptProfile(
        id=profile["id"],
        display_name=profile["display_name"],
        tesseract_lang=profile["tesseract_lang"],
        unicode_ranges=tuple(profile["unicode_ranges"]),
        lang_paths=tuple(profile["lang_paths"]),
    )


def candidate_lang_paths(
    profile: ScriptProfile,
    overrides: list[str] | None = None,
    tessdata_dir: str | None = None,
) -> list[str]:
    """Return the ordered language-data locations to try for *profile*."""
    paths = list(overrides) if overrides else list(profile.lang_paths)
    if tessdata_dir and tessdata_dir not in paths:
        paths.insert(0, tessdata_dir)
    return paths
