from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Optional

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

GENERAL = "general"
FEED_IN = "feedIn"


class UserConfig(db.Model):
    id = db.Column(db.Integer, primary_key=True, default=1)
    api_key = db.Column(db.String(256), nullable=True)
    site_id = db.Column(db.String(64), nullable=True)
    auth_token = db.Column(db.String(128), nullable=True)


def parse_ts(val) -> Optional[datetime]:
    """Parse ISO8601 timestamp into datetime (UTC-aware when Z)."""
    if not val:
        return None
    if isinstance(val, datetime):
        return val
    try:
        if val.endswith("Z"):
            return datetime.fromisoformat(val.replace("Z", "+00:00"))
        return datetime.fromisoformat(val)
    except ValueError:
        return None


def _float(val) -> float:
    return float(val or 0.0)


@dataclass(frozen=True)
class UsageInterval:
    start_time: datetime
    channel_type: str
    kwh: float
    cost: float  # cents
    end_time: Optional[datetime] = None
    descriptor: Optional[str] = None

    @classmethod
    def from_api(cls, row: Dict[str, Any]) -> "UsageInterval":
        return cls(
            start_time=parse_ts(row.get("startTime")),
            end_time=parse_ts(row.get("endTime")),
            channel_type=row.get("channelType") or "",
            kwh=_float(row.get("kwh")),
            cost=_float(row.get("cost")),
            descriptor=row.get("descriptor"),
        )


@dataclass(frozen=True)
class PriceInterval:
    start_time: datetime
    channel_type: str
    per_kwh: float  # cents
    spot_per_kwh: float
    renewables: float  # percent, 0-100
    descriptor: Optional[str] = None
    end_time: Optional[datetime] = None
    interval_type: Optional[str] = None

    @classmethod
    def from_api(cls, row: Dict[str, Any]) -> "PriceInterval":
        return cls(
            start_time=parse_ts(row.get("startTime")),
            end_time=parse_ts(row.get("endTime")),
            channel_type=row.get("channelType") or "",
            per_kwh=_float(row.get("perKwh")),
            spot_per_kwh=_float(row.get("spotPerKwh")),
            renewables=_float(row.get("renewables")),
            descriptor=row.get("descriptor"),
            interval_type=row.get("type"),
        )


@dataclass(frozen=True)
class Site:
    id: str
    status: str
    nmi: Optional[str] = None
    network: Optional[str] = None

    @classmethod
    def from_api(cls, row: Dict[str, Any]) -> "Site":
        return cls(
            id=str(row.get("id") or row.get("siteId") or ""),
            status=row.get("status") or "",
            nmi=row.get("nmi"),
            network=row.get("network"),
        )


@dataclass(frozen=True)
class DateChunk:
    start_date: date
    end_date: date

    @property
    def days(self) -> int:
        return (self.end_date - self.start_date).days + 1


@dataclass(frozen=True)
class DailyStat:
    date: date
    total_usage_kwh: float = 0.0
    solar_export_kwh: float = 0.0
    total_cost_cents: float = 0.0
    avg_renewables_pct: float = 0.0

    def date_key(self) -> str:
        return self.date.isoformat()


@dataclass(frozen=True)
class RangeTotals:
    total_usage_kwh: float = 0.0
    total_cost_cents: float = 0.0
    avg_price_cents: float = 0.0
    avg_renewables_pct: float = 0.0


@dataclass(frozen=True)
class DetailPoint:
    start_time: datetime
    time: str  # HH:MM, local
    usage_kwh: float
    cost_cents: float
    price_cents: float
    renewables_pct: float
