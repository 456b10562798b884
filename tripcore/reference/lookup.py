from typing import Any, Dict, List, Optional, Tuple
import csv
import json
import os

from tripcore.cache.policies import CacheTTL
from tripcore.cache.response_cache import ResponseCache, generate_cache_key
from tripcore.geo.geomath import distance_km
from tripcore.interfaces import LocationLookup
from tripcore.types import Coordinates


class ReferenceLocationDb:
    """Airport and hotel reference records keyed by (kind, identifier).

    Prefers a prebuilt JSON file next to the CSV when one exists. Airport codes
    are matched case-insensitively; hotel ids are matched exactly. Rows with
    blank coordinates are kept so lookups can tell "unknown" from "unmapped".
    """

    def __init__(self, csv_path: str):
        self.records: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.by_city: Dict[str, List[str]] = {}

        json_path = os.path.splitext(csv_path)[0] + ".json"
        if os.path.exists(json_path):
            self._load_from_json(json_path)
        else:
            self._load_from_csv(csv_path)

    @staticmethod
    def _key(kind: str, identifier: str) -> Tuple[str, str]:
        ident = str(identifier).strip()
        if kind == "airport":
            ident = ident.upper()
        return kind, ident

    @staticmethod
    def _to_float(value: Any) -> Optional[float]:
        if value is None:
            return None
        s = str(value).strip()
        if not s:
            return None
        try:
            return float(s)
        except ValueError:
            return None

    def _add(self, row: Dict[str, Any]) -> None:
        kind = (row.get("kind") or "").strip().lower()
        identifier = (row.get("identifier") or "").strip()
        if kind not in ("airport", "hotel") or not identifier:
            return
        if kind == "airport" and len(identifier) != 3:
            return
        key = self._key(kind, identifier)
        record = {
            "kind": kind,
            "identifier": key[1],
            "name": (row.get("name") or "").strip(),
            "city": (row.get("city") or "").strip(),
            "country": (row.get("country") or "").strip(),
            "latitude": self._to_float(row.get("latitude")),
            "longitude": self._to_float(row.get("longitude")),
        }
        self.records[key] = record
        city = record["city"].lower()
        if kind == "airport" and city:
            codes = self.by_city.setdefault(city, [])
            if key[1] not in codes:
                codes.append(key[1])

    def _load_from_json(self, path: str) -> None:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        for row in data.get("locations", []):
            self._add(row)

    def _load_from_csv(self, path: str) -> None:
        with open(path, newline="", encoding="utf-8") as f:
            for row in csv.DictReader(f):
                self._add(row)

    def get(self, kind: str, identifier: str) -> Optional[Dict[str, Any]]:
        record = self.records.get(self._key(kind, identifier))
        return dict(record) if record else None

    async def lookup(self, kind: str, identifier: str) -> Optional[Dict[str, Any]]:
        return self.get(kind, identifier)

    def airports_in_city(self, city: str) -> List[str]:
        return list(self.by_city.get(city.strip().lower(), []))

    def airports_near(self, center: Coordinates, radius_km: float) -> List[Dict[str, Any]]:
        """Airports within ``radius_km`` of ``center``, nearest first."""
        found = []
        for (kind, _), rec in self.records.items():
            if kind != "airport" or rec["latitude"] is None or rec["longitude"] is None:
                continue
            d = distance_km(center, Coordinates(latitude=rec["latitude"], longitude=rec["longitude"]))
            if d <= radius_km:
                found.append({**rec, "distance_km": round(d, 1)})
        return sorted(found, key=lambda r: r["distance_km"])


class CachedLocationLookup:
    """Reference lookups behind the response cache with a long TTL."""

    def __init__(self, lookup: LocationLookup, cache: ResponseCache, ttl: Optional[CacheTTL] = None):
        self.inner = lookup
        self.cache = cache
        self.ttl = ttl or CacheTTL()

    async def lookup(self, kind: str, identifier: str) -> Optional[Dict[str, Any]]:
        key = generate_cache_key(f"{kind}s", str(identifier).upper() if kind == "airport" else identifier)
        record = await self.cache.get_or_compute(
            key, self.ttl.for_kind(kind), lambda: self.inner.lookup(kind, identifier)
        )
        if record is None:
            # Unknown identifiers are not remembered; the record may be added later
            self.cache.delete(key)
        return record
