from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Dict

from .errors import ConfigError

logger = logging.getLogger(__name__)

PROVIDERS_FILE_ENV = "MAPSTITCH_PROVIDERS_FILE"

_TEMPLATE_PATTERN = re.compile(r"\{z\}", re.IGNORECASE)

ProviderMetadata = Dict[str, str]


BUILTIN_PROVIDERS: Dict[str, ProviderMetadata] = {
    "osm": {
        "label": "OpenStreetMap standard",
        "template": "https://tile.openstreetmap.org/{z}/{x}/{y}.png",
    },
    "opentopomap": {
        "label": "OpenTopoMap",
        "template": "https://a.tile.opentopomap.org/{z}/{x}/{y}.png",
    },
    "carto-light": {
        "label": "CARTO Positron",
        "template": "https://a.basemaps.cartocdn.com/light_all/{z}/{x}/{y}.png",
    },
    "stamen-toner": {
        "label": "Stamen Toner (Stadia Maps)",
        "template": "https://tiles.stadiamaps.com/tiles/stamen_toner/{z}/{x}/{y}.png",
    },
    "esri-imagery": {
        "label": "Esri World Imagery",
        "template": (
            "https://server.arcgisonline.com/ArcGIS/rest/services/World_Imagery/MapServer/tile/{z}/{y}/{x}"
        ),
    },
}


def is_template(value: str) -> bool:
    return bool(_TEMPLATE_PATTERN.search(value))


def load_providers(path: Path | None = None) -> Dict[str, ProviderMetadata]:
    """Return the built-in providers merged with an optional JSON registry file.

    The file maps provider keys either to a template string or to an object
    with ``template`` and optional ``label`` entries.
    """

    providers = {key: dict(value) for key, value in BUILTIN_PROVIDERS.items()}

    if path is None:
        override = os.getenv(PROVIDERS_FILE_ENV, "").strip()
        if not override:
            return providers
        path = Path(override).expanduser()

    try:
        payload = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Unable to read provider registry {path}: {exc}") from exc

    if not isinstance(payload, dict):
        raise ConfigError(f"Provider registry {path} must contain a JSON object")

    for key, entry in payload.items():
        if isinstance(entry, str):
            entry = {"template": entry}
        if not isinstance(entry, dict) or not is_template(str(entry.get("template", ""))):
            logger.warning("Skipping provider %s without a {z}/{x}/{y} template", key)
            continue
        providers[key] = {
            "label": str(entry.get("label") or key),
            "template": str(entry["template"]),
        }

    return providers


def resolve_template(key_or_template: str, providers: Dict[str, ProviderMetadata] | None = None) -> str:
    """Return the URL template for a provider key, or the value itself if it is a template."""

    if is_template(key_or_template):
        return key_or_template

    providers = providers if providers is not None else load_providers()
    entry = providers.get(key_or_template)
    if entry is None:
        raise ConfigError(f"No such provider: {key_or_template}")
    return entry["template"]
