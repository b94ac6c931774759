import json
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4 as _uuid4

SUCCESS_CODE = "00000"


def uuid4() -> str:
    return str(_uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def json_default(o):
    if isinstance(o, Decimal):
        return float(o)
    if isinstance(o, (date, datetime)):
        return o.isoformat()
    return str(o)


def json_dumps(obj) -> str:
    return json.dumps(obj, ensure_ascii=False, default=json_default)


def parse_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            pass
    return utcnow()
