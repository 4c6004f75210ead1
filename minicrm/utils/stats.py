"""
In-memory reductions behind the statistics endpoints and the derived
fields attached to customers and companies.
"""
import math
from collections import OrderedDict
from decimal import Decimal, InvalidOperation

from minicrm.utils.date_utils import month_key, to_utc


def to_number(value):
    """Coerce a stored amount to float, with null/unparseable values as 0."""
    if value is None:
        return 0.0
    try:
        number = float(Decimal(str(value).strip()))
    except (InvalidOperation, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


def number_string(value):
    """Render a float the way the API always has: 4.0 -> '4', 4.5 -> '4.5'."""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def money(value):
    return f"{value:.2f}"


def average_rating(ratings):
    rated = [r for r in ratings if r is not None]
    if not rated:
        return 0
    return sum(rated) / len(rated)


def rating_summary(applications):
    return {
        'averagerating': number_string(average_rating([a.rating for a in applications])),
        'applicationscount': str(len(applications)),
    }


def conversion_rate(converted, total):
    # Empty sets report a bare '0' rather than '0.00'; clients already parse both
    if total <= 0:
        return '0'
    return f"{converted / total * 100:.2f}"


def lead_summary(leads):
    total_value = sum(to_number(lead.value) for lead in leads)
    return {
        'total_leads': len(leads),
        'total_value': money(total_value),
        'converted_leads': sum(1 for lead in leads if lead.status == 'Converted'),
    }


def count_by(rows, attr, keys):
    """Count rows per value of attr, every key in keys present even at 0."""
    counts = OrderedDict((key, 0) for key in keys)
    for row in rows:
        value = getattr(row, attr)
        if value in counts:
            counts[value] += 1
    return dict(counts)


def totals_by(rows, attr, keys, amount_attr='amount'):
    """{value: {count, total_amount}} seeded with keys; unseen values are added."""
    buckets = OrderedDict((key, {'count': 0, 'total_amount': 0.0}) for key in keys)
    for row in rows:
        value = getattr(row, attr)
        bucket = buckets.setdefault(value, {'count': 0, 'total_amount': 0.0})
        bucket['count'] += 1
        bucket['total_amount'] += to_number(getattr(row, amount_attr))
    return {
        key: {'count': bucket['count'], 'total_amount': number_string(bucket['total_amount'])}
        for key, bucket in buckets.items()
    }


def monthly_series(rows, date_attr, amount_attr=None, since=None):
    """
    Group rows by calendar month of date_attr.

    Args:
        rows: ORM rows
        date_attr: Timestamp attribute to bucket on
        amount_attr: When given, each bucket also sums this attribute
        since: Aware datetime; older rows are skipped

    Returns:
        list of {'month': 'YYYY-MM-01', 'count': n[, 'total_amount': '...']}
        in ascending month order
    """
    buckets = {}
    for row in rows:
        stamp = getattr(row, date_attr)
        if stamp is None:
            continue
        stamp = to_utc(stamp)
        if since is not None and stamp < since:
            continue
        bucket = buckets.setdefault(month_key(stamp), {'count': 0, 'total_amount': 0.0})
        bucket['count'] += 1
        if amount_attr:
            bucket['total_amount'] += to_number(getattr(row, amount_attr))

    series = []
    for month in sorted(buckets):
        entry = {'month': month, 'count': buckets[month]['count']}
        if amount_attr:
            entry['total_amount'] = number_string(buckets[month]['total_amount'])
        series.append(entry)
    return series
