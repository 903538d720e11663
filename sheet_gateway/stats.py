# sheet_gateway/stats.py
from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pandas as pd

from .schemas import AuthKeyRecord
from .store import decode_bool
from .usage_log import FREE_COMPANY, FREE_KEY_MARKER


def _empty_bucket() -> Dict[str, Any]:
    return {"totalUsers": 0, "currentMonthUsers": 0, "monthlyActiveUsers": {}}


def _empty_stats(current_month: str) -> Dict[str, Any]:
    return {
        "companies": {},
        "totalUniqueUsers": 0,
        "totalFreeUsers": 0,
        "totalPaidUsers": 0,
        "currentMonth": current_month,
        "breakdown": {"free": _empty_bucket(), "paid": _empty_bucket()},
    }


def _is_free(entry: Mapping[str, Any]) -> bool:
    return (
        decode_bool(entry.get("isFreeUser"))
        or entry.get("authKey") == FREE_KEY_MARKER
        or entry.get("company") == FREE_COMPANY
    )


def _frame(logs: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    rows: List[Dict[str, Any]] = []
    for entry in logs:
        email, company, ts = entry.get("email"), entry.get("company"), entry.get("timestamp")
        if not (email and company and ts):
            continue
        rows.append({
            "email": str(email).strip().lower(),
            "company": str(company),
            "month": str(ts)[:7],
            "is_free": _is_free(entry),
        })
    return pd.DataFrame(rows, columns=["email", "company", "month", "is_free"])


def _month_counts(df: pd.DataFrame) -> Dict[str, int]:
    if df.empty:
        return {}
    series = df.groupby("month")["email"].nunique().sort_index()
    return {str(month): int(n) for month, n in series.items()}


def _bucket(df: pd.DataFrame, current_month: str) -> Dict[str, Any]:
    monthly = _month_counts(df)
    return {
        "totalUsers": int(df["email"].nunique()) if not df.empty else 0,
        "currentMonthUsers": monthly.get(current_month, 0),
        "monthlyActiveUsers": monthly,
    }


def aggregate(logs: Iterable[Mapping[str, Any]], now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Distinct users per company and month.

    Emails are compared case-insensitively. Entries without email, company or
    timestamp are ignored. The result depends only on the set of entries, not
    their order.
    """
    current_month = (now or datetime.now(timezone.utc)).strftime("%Y-%m")
    stats = _empty_stats(current_month)
    df = _frame(logs)
    if df.empty:
        return stats

    for company, group in df.groupby("company", sort=True):
        monthly = _month_counts(group)
        total = int(group["email"].nunique())
        stats["companies"][str(company)] = {
            "monthlyActiveUsers": monthly,
            "totalUniqueUsers": total,
            "currentMonthUsers": monthly.get(current_month, 0),
            "isFree": company == FREE_COMPANY,
        }
        stats["totalUniqueUsers"] += total

    free, paid = df[df["is_free"]], df[~df["is_free"]]
    stats["breakdown"]["free"] = _bucket(free, current_month)
    stats["breakdown"]["paid"] = _bucket(paid, current_month)
    stats["totalFreeUsers"] = stats["breakdown"]["free"]["totalUsers"]
    stats["totalPaidUsers"] = stats["breakdown"]["paid"]["totalUsers"]
    return stats


def attach_key_info(stats: Dict[str, Any], records: Iterable[AuthKeyRecord]) -> Dict[str, Any]:
    companies = stats.setdefault("companies", {})
    for record in records:
        entry = companies.setdefault(record.company, {
            "monthlyActiveUsers": {},
            "totalUniqueUsers": 0,
            "currentMonthUsers": 0,
            "isFree": False,
        })
        entry["authKey"] = record.key
        entry["isActive"] = record.is_active
    return stats
