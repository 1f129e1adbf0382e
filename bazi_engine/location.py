"""
Birth location resolution.

A location reduces to a fixed longitude and a fixed civil UTC offset.
The offset's standard meridian (offset × 15°) is the reference for the
mean-solar-time correction.

Timezone is auto-detected from coordinates when no offset is given;
BaZi uses the zone's standard offset (DST stripped) as in
historical-DST periods the clock runs an hour ahead of standard time.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Mapping, Optional
from zoneinfo import ZoneInfo

from timezonefinder import TimezoneFinder

from bazi_engine.errors import InputValidationError


# Representative longitude per Japanese prefecture (prefectural capitals)
PREF_LONGITUDE = {
    "北海道": 141.35, "青森県": 140.74, "岩手県": 141.15, "宮城県": 140.87,
    "秋田県": 140.10, "山形県": 140.34, "福島県": 140.47,
    "茨城県": 140.45, "栃木県": 139.88, "群馬県": 139.06, "埼玉県": 139.65,
    "千葉県": 140.12, "東京都": 139.69, "神奈川県": 139.64,
    "新潟県": 139.02, "富山県": 137.21, "石川県": 136.66, "福井県": 136.22,
    "山梨県": 138.57, "長野県": 138.18,
    "岐阜県": 136.76, "静岡県": 138.38, "愛知県": 136.91, "三重県": 136.51,
    "滋賀県": 135.87, "京都府": 135.76, "大阪府": 135.50, "兵庫県": 135.18,
    "奈良県": 135.83, "和歌山県": 135.17,
    "鳥取県": 134.24, "島根県": 133.05, "岡山県": 133.93, "広島県": 132.46,
    "山口県": 131.47,
    "徳島県": 134.56, "香川県": 134.05, "愛媛県": 132.77, "高知県": 133.53,
    "福岡県": 130.40, "佐賀県": 130.30, "長崎県": 129.87, "熊本県": 130.71,
    "大分県": 131.61, "宮崎県": 131.42, "鹿児島県": 130.56,
    "沖縄県": 127.68,
}

JST_UTC_OFFSET = 9.0


@lru_cache(maxsize=1)
def _timezone_finder() -> TimezoneFinder:
    return TimezoneFinder()


@dataclass(frozen=True)
class Location:
    longitude: Optional[float]
    utc_offset: float
    latitude: Optional[float] = None
    name: Optional[str] = None
    timezone_name: Optional[str] = None

    @property
    def tz(self) -> timezone:
        return timezone(timedelta(hours=self.utc_offset))

    @property
    def standard_meridian(self) -> float:
        return self.utc_offset * 15.0

    @classmethod
    def from_coordinates(cls, latitude: float, longitude: float, on: date,
                         name: Optional[str] = None) -> "Location":
        """
        Resolve the civil offset from coordinates and date.

        Uses the zone's standard (non-DST) offset in force at noon on ``on``.
        """
        tz_name = _timezone_finder().timezone_at(lat=latitude, lng=longitude)
        if tz_name is None:
            raise InputValidationError(
                f"Could not determine timezone for ({latitude}, {longitude})")

        local_dt = datetime(on.year, on.month, on.day, 12, 0, tzinfo=ZoneInfo(tz_name))
        offset = local_dt.utcoffset()
        dst = local_dt.dst()
        if dst:
            offset -= dst

        return cls(
            longitude=longitude,
            utc_offset=offset.total_seconds() / 3600,
            latitude=latitude,
            name=name,
            timezone_name=tz_name,
        )

    @classmethod
    def from_prefecture(cls, pref: str) -> "Location":
        if pref not in PREF_LONGITUDE:
            raise InputValidationError(f"Unknown prefecture: {pref!r}")
        return cls(longitude=PREF_LONGITUDE[pref], utc_offset=JST_UTC_OFFSET,
                   name=pref, timezone_name="Asia/Tokyo")

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "utc_offset": self.utc_offset,
            "standard_meridian": self.standard_meridian,
            "timezone": self.timezone_name,
        }


def _number(data: Mapping[str, Any], key: str, low: float, high: float) -> float:
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InputValidationError(f"location.{key} must be a number, got {value!r}")
    if not low <= value <= high:
        raise InputValidationError(f"location.{key} out of range [{low}, {high}]: {value!r}")
    return float(value)


def resolve_location(data: Optional[Mapping[str, Any]], on: date) -> Location:
    """
    Build a Location from a request mapping.

    Accepted shapes:
        {"longitude": 139.69, "utc_offset": 9}
        {"latitude": 35.68, "longitude": 139.69}      (offset auto-detected)
        {"pref": "東京都"}                              (Japan, UTC+9)
        {"utc_offset": 9}                               (no longitude: no correction)
    """
    if data is None:
        raise InputValidationError("location required")
    if not isinstance(data, Mapping):
        raise InputValidationError(f"location must be a mapping, got {type(data).__name__}")

    name = data.get("name")
    if "pref" in data:
        return Location.from_prefecture(data["pref"])

    longitude = _number(data, "longitude", -180.0, 180.0) if "longitude" in data else None

    if "utc_offset" in data:
        offset = _number(data, "utc_offset", -14.0, 14.0)
        latitude = _number(data, "latitude", -90.0, 90.0) if "latitude" in data else None
        return Location(longitude=longitude, utc_offset=offset, latitude=latitude, name=name)

    if longitude is not None and "latitude" in data:
        latitude = _number(data, "latitude", -90.0, 90.0)
        return Location.from_coordinates(latitude, longitude, on, name=name)

    raise InputValidationError(
        "location needs utc_offset, latitude+longitude, or a prefecture")
