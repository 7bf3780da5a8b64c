import json
from typing import Mapping, Optional, Protocol


class TrackCatalog(Protocol):
    def get_producer_id(self, *, track_id: str) -> Optional[str]: ...


class StaticTrackCatalog:
    def __init__(self, *, tracks: Mapping[str, str]) -> None:
        self._tracks = dict(tracks)

    def get_producer_id(self, *, track_id: str) -> Optional[str]:
        return self._tracks.get(track_id)

    def register_track(self, *, track_id: str, producer_id: str) -> None:
        self._tracks[track_id] = producer_id


def parse_track_catalog(catalog_json: Optional[str]) -> dict[str, str]:
    normalized_json = (catalog_json or "").strip()
    if not normalized_json:
        return {}
    try:
        raw = json.loads(normalized_json)
    except json.JSONDecodeError:
        return {}
    if not isinstance(raw, dict):
        return {}

    catalog: dict[str, str] = {}
    for track_id, producer_id in raw.items():
        if not isinstance(track_id, str) or not isinstance(producer_id, str):
            continue
        if not track_id.strip() or not producer_id.strip():
            continue
        catalog[track_id.strip()] = producer_id.strip()
    return catalog
