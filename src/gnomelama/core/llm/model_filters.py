"""Model catalog filtering.

Hosted catalogs list many snapshot, preview and special-purpose variants.
These helpers reduce them to one chat model per family.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable

from gnomelama.core.llm.providers import get_provider_config

GEMINI_PREFIX = get_provider_config("gemini").model_prefix

_OPENAI_EXCLUDED = ("instruct", "audio", "search", "realtime")
_OPENAI_DATE_FRAGMENT = re.compile(r"-\d{4}")
_OPENAI_SNAPSHOT_SUFFIX = re.compile(r"-\d{3,4}$")
_OPENAI_PREVIEW_SUFFIX = re.compile(r"-preview(-\d{4}-\d{2}-\d{2})?$")
_OPENAI_DATED_PREVIEW = re.compile(r"-preview-\d{4}-\d{2}-\d{2}$")

_GEMINI_EXCLUDED = ("vision", "embedding")
_GEMINI_NUMERIC = re.compile(r"-\d+(-|$)")
_GEMINI_DATE = re.compile(r"-\d{2}-\d{2}")
_GEMINI_DATE_TAIL = re.compile(r"-\d{2}-\d{2}.*")
_GEMINI_MARKERS = ("-exp", "-preview", "-latest", "-tuning")


def remove_duplicate_models(models: Iterable[str]) -> list[str]:
    """Drop exact duplicates, keeping first occurrence order."""
    return list(dict.fromkeys(models))


def sort_models(models: Iterable[str]) -> list[str]:
    return sorted(models)


def group_models(models: Iterable[str], key: Callable[[str], str]) -> dict[str, list[str]]:
    """Group models by ``key(model)``, preserving order within each group."""
    groups: dict[str, list[str]] = {}
    for model in models:
        groups.setdefault(key(model), []).append(model)
    return groups


def _is_openai_chat_model(model_id: str) -> bool:
    lowered = model_id.lower()
    if "gpt" not in lowered:
        return False
    if any(word in lowered for word in _OPENAI_EXCLUDED):
        return False
    return not (_OPENAI_DATE_FRAGMENT.search(lowered) or _OPENAI_SNAPSHOT_SUFFIX.search(lowered))


def filter_openai_models(model_ids: Iterable[str]) -> list[str]:
    """Reduce an OpenAI ``/models`` listing to one chat model per family.

    Keeps GPT ids, drops instruct/audio/search/realtime and dated snapshots.
    Within a family (id minus ``-preview[-YYYY-MM-DD]``) the first
    non-preview id wins, then an undated preview, then any preview.
    """
    candidates = [m for m in remove_duplicate_models(model_ids) if _is_openai_chat_model(m)]
    groups = group_models(candidates, lambda m: _OPENAI_PREVIEW_SUFFIX.sub("", m))

    selected: list[str] = []
    for variants in groups.values():
        stable = [v for v in variants if "-preview" not in v]
        if stable:
            selected.append(stable[0])
            continue
        undated = [v for v in variants if not _OPENAI_DATED_PREVIEW.search(v)]
        selected.append(undated[0] if undated else variants[0])

    return sort_models(selected)


def _gemini_is_clean(model_id: str) -> bool:
    if _GEMINI_NUMERIC.search(model_id) or _GEMINI_DATE.search(model_id):
        return False
    return not any(marker in model_id for marker in _GEMINI_MARKERS)


def _gemini_base_name(model_id: str) -> str:
    base = _GEMINI_NUMERIC.sub("-", model_id, count=1).removesuffix("-")
    for marker in _GEMINI_MARKERS:
        base = base.split(marker, 1)[0]
    return _GEMINI_DATE_TAIL.sub("", base)


def strip_gemini_name(name: str) -> str:
    """``models/gemini-pro`` -> ``gemini-pro``."""
    return name.removeprefix("models/")


def filter_gemini_models(names: Iterable[str]) -> list[str]:
    """Reduce a Gemini ``/models`` listing to one model per family.

    Names may carry the API's ``models/`` prefix. Results are returned
    with the ``gemini:`` prefix used for routing. A clean id (no numeric,
    ``-exp``, ``-preview``, ``-latest``, ``-tuning`` or date suffix) is
    preferred over suffixed variants of the same family.
    """
    families: dict[str, dict[str, list[str]]] = {}
    for name in remove_duplicate_models(strip_gemini_name(n) for n in names):
        if "gemini" not in name or any(word in name for word in _GEMINI_EXCLUDED):
            continue
        entry = families.setdefault(_gemini_base_name(name), {"clean": [], "suffixed": []})
        entry["clean" if _gemini_is_clean(name) else "suffixed"].append(name)

    selected = []
    for entry in families.values():
        choice = entry["clean"][-1] if entry["clean"] else entry["suffixed"][0]
        selected.append(f"{GEMINI_PREFIX}{choice}")

    return sort_models(selected)
