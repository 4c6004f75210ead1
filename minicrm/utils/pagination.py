import math

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100


def _positive_int(value, default):
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def parse_pagination(args):
    page = _positive_int(args.get('page'), DEFAULT_PAGE)
    limit = min(_positive_int(args.get('limit'), DEFAULT_LIMIT), MAX_LIMIT)
    return page, limit


def page_meta(page, limit, total):
    return {
        'page': page,
        'limit': limit,
        'total': total,
        'totalPages': math.ceil(total / limit) if total else 0,
    }


def paginate(query, page, limit):
    """
    Run a filtered query for one page.

    The total is a COUNT over the same filtered query (issued before ordering
    and windowing), so search and status filters narrow it too.

    Returns:
        (rows, pagination) where rows holds at most `limit` items
    """
    total = query.order_by(None).count()
    offset = (page - 1) * limit
    rows = query.offset(offset).limit(limit).all()
    return rows, page_meta(page, limit, total)


def escape_like(term):
    return term.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


def like_pattern(term):
    return f"%{escape_like(term)}%"
