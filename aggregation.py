"""
Report aggregation for the Hafalan portal.

Pure, synchronous transformations over records already fetched by
load_data.fetch_table:

- filter_records: key/value constraints (equality, membership, ISO date bounds)
- paginate: fixed-size pages with a 1-based page number
- tally / score_level_tally / category_tally / date_tally: grouped counts
- student_rollup: one summary row per student
- ViewState: per-view filter + page state, page resets when filters change

Every reporting screen goes through these functions; screens only supply
their own constraints and grouping keys.

Two date comparisons live here and they are deliberately different:
the range filter compares ISO strings lexically, while "most recent" and
newest-first ordering compare parsed dates.
"""

import math
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterable, List, Optional

import pandas as pd

from config import ITEMS_PER_PAGE, SCORE_LEVELS, SCORE_VALUES

Record = Dict[str, Any]


# ==================== FILTERING ====================

@dataclass(frozen=True)
class Constraint:
    """One filter condition: record[field] <op> value."""
    field: str
    op: str          # "eq", "gte", "lte" or "in"
    value: Any


def equals(field_name: str, value: Optional[str]) -> Constraint:
    return Constraint(field_name, "eq", value)


def date_from(start: Optional[str], field_name: str = "Date") -> Constraint:
    """Inclusive lower bound, compared as ISO strings."""
    return Constraint(field_name, "gte", start)


def date_to(end: Optional[str], field_name: str = "Date") -> Constraint:
    """Inclusive upper bound, compared as ISO strings."""
    return Constraint(field_name, "lte", end)


def one_of(field_name: str, values: Optional[Iterable[str]]) -> Constraint:
    """Membership. None means no restriction; an empty collection matches nothing."""
    return Constraint(field_name, "in", None if values is None else frozenset(values))


def _is_absent(constraint: Constraint) -> bool:
    if constraint.op == "in":
        return constraint.value is None
    return constraint.value is None or constraint.value == ''


def _matches(record: Record, constraint: Constraint) -> bool:
    actual = record.get(constraint.field, '')
    if constraint.op == "eq":
        return actual == constraint.value
    if constraint.op == "gte":
        return actual >= constraint.value
    if constraint.op == "lte":
        return actual <= constraint.value
    if constraint.op == "in":
        return actual in constraint.value
    raise ValueError(f"Unknown comparator: {constraint.op!r}")


def filter_records(records: List[Record], constraints: Iterable[Constraint]) -> List[Record]:
    """
    Return the records satisfying every constraint, in input order.

    Constraints with an empty or missing value do not restrict anything.
    """
    active = [c for c in constraints if not _is_absent(c)]
    return [r for r in records if all(_matches(r, c) for c in active)]


# ==================== PAGINATION ====================

@dataclass
class Page:
    """One page of a filtered record list."""
    items: List[Record]
    page: int
    total_pages: int
    total_items: int


def total_pages(count: int, page_size: int = ITEMS_PER_PAGE) -> int:
    return math.ceil(count / page_size)


def clamp_page(page: int, pages: int) -> int:
    """Clamp a page number into [1, max(pages, 1)]."""
    return min(max(page, 1), max(pages, 1))


def paginate(records: List[Record], page: int, page_size: int = ITEMS_PER_PAGE) -> Page:
    """
    Slice out page `page` (1-based) of `records`.

    The page number must already be clamped; anything outside
    [1, max(total_pages, 1)] raises ValueError.
    """
    pages = total_pages(len(records), page_size)
    if page < 1 or page > max(pages, 1):
        raise ValueError(f"Page {page} out of range (1..{max(pages, 1)})")

    start = (page - 1) * page_size
    return Page(
        items=records[start:start + page_size],
        page=page,
        total_pages=pages,
        total_items=len(records),
    )


# ==================== VIEW STATE ====================

@dataclass(frozen=True)
class ViewState:
    """
    Filter and page state owned by one paginated view.

    update() derives the next state: any change to the filters puts the view
    back on page 1, a page change alone keeps the filters.
    """
    filters: Dict[str, Any] = field(default_factory=dict)
    page: int = 1

    def update(self, filters: Optional[Dict[str, Any]] = None,
               page: Optional[int] = None) -> "ViewState":
        new_filters = dict(self.filters) if filters is None else dict(filters)
        filters_changed = new_filters != self.filters
        requested = self.page if page is None else page
        return ViewState(filters=new_filters, page=1 if filters_changed else requested)

    def clamped(self, pages: int) -> "ViewState":
        return replace(self, page=clamp_page(self.page, pages))


def view_page(records: List[Record], state: ViewState,
              page_size: int = ITEMS_PER_PAGE) -> Page:
    """Paginate with the view's page clamped into range first."""
    pages = total_pages(len(records), page_size)
    return paginate(records, state.clamped(pages).page, page_size)


# ==================== GROUPED TALLIES ====================

@dataclass
class TallyEntry:
    key: str
    count: int
    percentage: int


def percentage(count: int, total: int) -> int:
    """count/total as a whole percentage, rounded half up. 0 when total is 0."""
    if total == 0:
        return 0
    # Exact integer rounding, so 29/200 (14.5) gives 15
    return (200 * count + total) // (2 * total)


def tally(records: List[Record],
          key_func: Callable[[Record], Any],
          keys: Optional[List[str]] = None) -> List[TallyEntry]:
    """
    Count records per key.

    Percentages are relative to len(records), so records whose key is not
    in `keys` still count towards the total.

    Args:
        records: Filtered records
        key_func: Grouping key for one record
        keys: Closed set of keys. When given, the result is dense (every key,
            in this order, zero counts included) and other keys are dropped.
            When omitted, the result is sparse in first-seen order.
    """
    total = len(records)
    counts: Dict[Any, int] = {k: 0 for k in keys} if keys is not None else {}

    for record in records:
        key = key_func(record)
        if keys is not None and key not in counts:
            continue
        counts[key] = counts.get(key, 0) + 1

    return [TallyEntry(key=k, count=c, percentage=percentage(c, total))
            for k, c in counts.items()]


def score_level_tally(records: List[Record]) -> List[TallyEntry]:
    """Dense tally over BB, MB, BSH, BSB. Unknown levels are not listed."""
    return tally(records, lambda r: r.get('Score', ''), keys=SCORE_LEVELS)


def category_tally(records: List[Record]) -> List[TallyEntry]:
    """Sparse tally of the categories observed, highest count first."""
    entries = tally(records, lambda r: r.get('Category', ''))
    return sorted(entries, key=lambda e: e.count, reverse=True)


def date_tally(records: List[Record]) -> List[TallyEntry]:
    """Sparse tally of assessment dates, oldest first."""
    entries = tally(records, lambda r: r.get('Date', ''))
    return sorted(entries, key=lambda e: e.key)


def tally_frame(entries: List[TallyEntry], key_header: str) -> pd.DataFrame:
    """Chart-ready DataFrame with columns key_header, Jumlah, Persentase."""
    return pd.DataFrame(
        [{key_header: e.key, 'Jumlah': e.count, 'Persentase': e.percentage} for e in entries],
        columns=[key_header, 'Jumlah', 'Persentase'],
    )


# ==================== DATES ====================

def parse_date(value: Any) -> Optional[pd.Timestamp]:
    """Parse a date string; None when empty or unparsable."""
    parsed = pd.to_datetime(value, errors='coerce')
    if pd.isna(parsed):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.tz_convert(None)
    return parsed


def sort_newest_first(records: List[Record]) -> List[Record]:
    """Order by parsed Date, newest first. Unparsable dates go last."""
    def sort_key(record):
        parsed = parse_date(record.get('Date'))
        return parsed if parsed is not None else pd.Timestamp.min

    return sorted(records, key=sort_key, reverse=True)


def latest_date(records: List[Record]) -> str:
    """Most recent Date (compared as dates, not strings), or "-" if none."""
    latest_value = None
    latest_parsed = None
    for record in records:
        parsed = parse_date(record.get('Date'))
        if parsed is None:
            continue
        if latest_parsed is None or parsed > latest_parsed:
            latest_parsed = parsed
            latest_value = record['Date']
    return latest_value if latest_value is not None else '-'


# ==================== PER-STUDENT ROLLUP ====================

@dataclass
class StudentSummary:
    """Assessment summary for one student."""
    name: str
    nisn: str
    class_name: str
    total: int
    bb: int
    mb: int
    bsh: int
    bsb: int
    average: str        # one decimal, "0" without scores
    latest_date: str    # "-" without scores


def average_score(levels: List[str]) -> str:
    """Mean of BB=1 .. BSB=4 over known levels, formatted to one decimal."""
    values = [SCORE_VALUES[level] for level in levels if level in SCORE_VALUES]
    if not values:
        return "0"
    return f"{sum(values) / len(values):.1f}"


def student_rollup(students: List[Record], scores: List[Record]) -> List[StudentSummary]:
    """
    One summary per student, most-assessed first.

    `scores` may already be filtered (by date or class). Students without
    scores are kept with zero counts. Ties keep student-table order.
    """
    by_student: Dict[str, List[Record]] = {}
    for score in scores:
        by_student.setdefault(score.get('Student ID', ''), []).append(score)

    summaries = []
    for student in students:
        own = by_student.get(student.get('NISN', ''), [])
        levels = [s.get('Score', '') for s in own]
        summaries.append(StudentSummary(
            name=student.get('Name', ''),
            nisn=student.get('NISN', ''),
            class_name=student.get('Class', ''),
            total=len(own),
            bb=levels.count('BB'),
            mb=levels.count('MB'),
            bsh=levels.count('BSH'),
            bsb=levels.count('BSB'),
            average=average_score(levels),
            latest_date=latest_date(own),
        ))

    # sorted() is stable, so ties keep student order
    return sorted(summaries, key=lambda s: s.total, reverse=True)


# ==================== JOINS ====================

def class_options(students: List[Record]) -> List[str]:
    """Distinct non-empty classes in first-seen order."""
    seen = []
    for student in students:
        cls = student.get('Class', '')
        if cls and cls not in seen:
            seen.append(cls)
    return seen


def student_names(students: List[Record]) -> Dict[str, str]:
    """NISN -> student name."""
    return {s.get('NISN', ''): s.get('Name', '') for s in students}


def scores_for_class(scores: List[Record], students: List[Record],
                     class_name: Optional[str]) -> List[Record]:
    """
    Scores belonging to students of `class_name`.

    An empty class name means every class. Scores whose Student ID matches
    no student are only kept in the every-class case.
    """
    if not class_name:
        return list(scores)
    members = filter_records(students, [equals('Class', class_name)])
    return filter_records(scores, [one_of('Student ID', (s.get('NISN', '') for s in members))])
