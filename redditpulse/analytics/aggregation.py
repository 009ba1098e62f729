# redditpulse/analytics/aggregation.py
"""
Pure read-side aggregation: category rollups and weekly trend series.

Nothing here touches the database; routes load rows through the stores and
hand them over.
"""
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

TREND_WINDOW_DAYS = 365


def as_utc(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes; they were stored as UTC
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def trend_window_start(now: Optional[datetime] = None) -> datetime:
    return as_utc(now or datetime.now(timezone.utc)) - timedelta(days=TREND_WINDOW_DAYS)


def week_start(dt: datetime) -> datetime:
    """Sunday 00:00 UTC of the week containing ``dt``."""
    dt = as_utc(dt)
    # weekday(): Monday=0 .. Sunday=6
    days_since_sunday = (dt.weekday() + 1) % 7
    start = dt - timedelta(days=days_since_sunday)
    return start.replace(hour=0, minute=0, second=0, microsecond=0)


def week_label(start: datetime) -> str:
    return f"{start.strftime('%b')} {start.day}"


# ---------------------------------------------------------
# Category tree
# ---------------------------------------------------------
def _category_dict(category: Any, post_count: int) -> Dict[str, Any]:
    return {
        "id": category.id,
        "name": category.name,
        "description": category.description,
        "parent_id": category.parent_id,
        "level": category.level,
        "sort_order": category.sort_order,
        "post_count": post_count,
    }


def rollup_category_tree(
    categories: Sequence[Any], counts: Mapping[int, int]
) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """
    Build the two-level tree with rolled-up post counts.

    A parent's ``post_count`` is the sum of its children's counts; children
    are ordered by ``sort_order``. Returns ``(tree, flat)`` where ``flat``
    lists every category in tree order with the same counts.
    """
    children_by_parent: Dict[int, List[Any]] = defaultdict(list)
    parents: List[Any] = []
    for category in categories:
        if category.parent_id is None:
            parents.append(category)
        else:
            children_by_parent[category.parent_id].append(category)

    tree: List[Dict[str, Any]] = []
    flat: List[Dict[str, Any]] = []

    for parent in sorted(parents, key=lambda c: (c.sort_order, c.id)):
        children = sorted(children_by_parent.get(parent.id, []), key=lambda c: (c.sort_order, c.id))
        child_dicts = [_category_dict(c, counts.get(c.id, 0)) for c in children]

        node = _category_dict(parent, sum(c["post_count"] for c in child_dicts))
        flat.append(dict(node))
        flat.extend(child_dicts)

        node["children"] = child_dicts
        tree.append(node)

    return tree, flat


# ---------------------------------------------------------
# Weekly trends
# ---------------------------------------------------------
def weekly_trends(
    posts: Iterable[Tuple[int, datetime]],
    assignments: Iterable[Tuple[int, str]],
    series_names: Sequence[str],
) -> Dict[str, Any]:
    """
    Percentage of each week's posts carrying each named label.

    ``posts`` are ``(post_id, created_at)`` pairs, ``assignments`` are
    ``(post_id, name)`` pairs. Weeks without posts are absent from the
    output; percentages are rounded to one decimal.
    """
    week_of: Dict[int, datetime] = {}
    totals: Dict[datetime, int] = defaultdict(int)
    for post_id, created_at in posts:
        week = week_start(created_at)
        week_of[post_id] = week
        totals[week] += 1

    counts: Dict[datetime, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
    seen = set()
    for post_id, name in assignments:
        week = week_of.get(post_id)
        if week is None or (post_id, name) in seen:
            continue
        seen.add((post_id, name))
        counts[week][name] += 1

    weeks = sorted(totals)
    datasets = []
    for name in series_names:
        data = []
        for week in weeks:
            total = totals[week]
            data.append(round(counts[week][name] / total * 100, 1) if total else 0)
        datasets.append({"label": name, "data": data})

    return {"labels": [week_label(w) for w in weeks], "datasets": datasets}
