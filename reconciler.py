"""Daily tally reconciliation and close-out.

Everything here is pure: functions take the stored tally (or ``None``), the
catalog and a ``YYYY-MM-DD`` day string and return new models. Persisting the
results is the caller's job.
"""

import logging
from typing import Iterable, Optional, Sequence, Tuple

from catalog import Catalog
from schemas import DailyTally, IncomingEntry, Report, ReportLineItem, TallyEntry

logger = logging.getLogger(__name__)


def is_stale(tally: Optional[DailyTally], today: str) -> bool:
    return tally is None or tally.date != today


def fresh_tally(catalog: Catalog, today: str) -> DailyTally:
    return DailyTally(
        date=today,
        categories=[TallyEntry(id=c.id, name=c.name, price=c.price, count=0) for c in catalog],
    )


def reconcile(tally: Optional[DailyTally], catalog: Catalog, today: str) -> DailyTally:
    """Return the tally for ``today`` merged against ``catalog``.

    A missing or stale tally rolls over to all-zero counts. On the same day,
    counts are kept per id while name and price are refreshed from the
    catalog; new catalog items start at zero and ids no longer in the catalog
    are dropped along with their counts. Entries follow catalog order.
    """
    if is_stale(tally, today):
        return fresh_tally(catalog, today)

    stored = {}
    for entry in tally.categories:
        stored.setdefault(entry.id, entry)

    entries = []
    for cat in catalog:
        prev = stored.pop(cat.id, None)
        entries.append(
            TallyEntry(id=cat.id, name=cat.name, price=cat.price, count=prev.count if prev else 0)
        )

    lost = [e for e in stored.values() if e.count > 0]
    if lost:
        logger.info(
            "Dropping counts for categories no longer in the catalog on %s: %s",
            today,
            ", ".join(f"{e.name} (id={e.id}) x{e.count}" for e in lost),
        )
    return DailyTally(date=today, categories=entries)


def update_today(
    tally: Optional[DailyTally],
    incoming: Iterable[IncomingEntry],
    catalog: Catalog,
    as_of: str,
) -> DailyTally:
    """Apply validated incoming entries on top of the reconciled tally.

    Last write wins per id. Ids missing from ``incoming`` keep their count;
    ids outside the catalog are ignored.
    """
    counts = {item.id: item.count for item in incoming}

    base = reconcile(tally, catalog, as_of)
    for entry in base.categories:
        if entry.id in counts:
            entry.count = counts[entry.id]
    return base


def derive_report(user_id: str, date: str, entries: Sequence[TallyEntry]) -> Report:
    # snapshotted prices, so later catalog edits never touch archived days
    items = [
        ReportLineItem(id=e.id, name=e.name, price=e.price, count=e.count, amount=e.count * e.price)
        for e in entries
        if e.count > 0
    ]
    return Report(
        user_id=user_id,
        date=date,
        items=items,
        total_qty=sum(it.count for it in items),
        total_amount=sum(it.amount for it in items),
    )


def zero_counts(tally: DailyTally) -> DailyTally:
    return DailyTally(
        date=tally.date,
        categories=[e.model_copy(update={"count": 0}) for e in tally.categories],
    )


def close_day(
    tally: Optional[DailyTally],
    catalog: Catalog,
    user_id: str,
    today: str,
) -> Tuple[Report, DailyTally]:
    """Archive today's counts into a report and return it with the zeroed tally."""
    current = reconcile(tally, catalog, today)
    report = derive_report(user_id, today, current.categories)
    return report, zero_counts(current)
