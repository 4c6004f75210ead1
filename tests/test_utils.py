from datetime import datetime
from types import SimpleNamespace

import pytest
import pytz

from minicrm.errors import ValidationError
from minicrm.utils.date_utils import locale_date_string, month_key, months_ago, parse_date
from minicrm.utils.pagination import parse_pagination, page_meta, escape_like
from minicrm.utils.scope import Caller, Owner, Admin, AdminAs, resolve_scope
from minicrm.utils.stats import (
    average_rating, conversion_rate, count_by, monthly_series, number_string, to_number, totals_by,
)
from minicrm.utils.validators import is_valid_rating, validate_registration


def test_parse_pagination_defaults_and_clamps():
    assert parse_pagination({}) == (1, 10)
    assert parse_pagination({'page': '0', 'limit': '-5'}) == (1, 10)
    assert parse_pagination({'page': 'abc', 'limit': 'x'}) == (1, 10)
    assert parse_pagination({'page': '3', 'limit': '500'}) == (3, 100)


@pytest.mark.parametrize('total,limit,pages', [(0, 10, 0), (1, 10, 1), (10, 10, 1), (11, 10, 2), (25, 7, 4)])
def test_page_meta_total_pages(total, limit, pages):
    meta = page_meta(1, limit, total)
    assert meta['totalPages'] == pages
    assert meta['total'] == total


def test_escape_like_escapes_wildcards():
    assert escape_like('50%_off\\') == '50\\%\\_off\\\\'


def test_average_rating_empty_and_nulls():
    assert average_rating([]) == 0
    assert average_rating([None, None]) == 0
    assert average_rating([4, None, 5]) == 4.5


def test_number_string_matches_js_rendering():
    assert number_string(0) == '0'
    assert number_string(4.0) == '4'
    assert number_string(4.5) == '4.5'
    assert number_string(10 / 3) == '3.3333333333333335'


def test_conversion_rate():
    assert conversion_rate(0, 0) == '0'
    assert conversion_rate(1, 4) == '25.00'
    assert conversion_rate(1, 3) == '33.33'


def test_to_number_tolerates_bad_values():
    assert to_number(None) == 0
    assert to_number('abc') == 0
    assert to_number('nan') == 0
    assert to_number('12.5') == 12.5


def test_count_by_seeds_every_key():
    rows = [SimpleNamespace(status='New'), SimpleNamespace(status='New'), SimpleNamespace(status='Lost')]
    counts = count_by(rows, 'status', ('New', 'Contacted', 'Lost'))
    assert counts == {'New': 2, 'Contacted': 0, 'Lost': 1}


def test_totals_by_adds_unknown_keys():
    rows = [
        SimpleNamespace(method='cash', amount='10.50'),
        SimpleNamespace(method='crypto', amount=5),
    ]
    totals = totals_by(rows, 'method', ('cash', 'paypal'))
    assert totals['cash'] == {'count': 1, 'total_amount': '10.5'}
    assert totals['paypal'] == {'count': 0, 'total_amount': '0'}
    assert totals['crypto'] == {'count': 1, 'total_amount': '5'}


def test_monthly_series_ascending_with_cutoff():
    utc = pytz.UTC
    rows = [
        SimpleNamespace(at=datetime(2024, 3, 5, tzinfo=utc), amount=10),
        SimpleNamespace(at=datetime(2024, 1, 20), amount=5),
        SimpleNamespace(at=datetime(2024, 3, 28, tzinfo=utc), amount=2.5),
        SimpleNamespace(at=datetime(2023, 6, 1, tzinfo=utc), amount=100),
        SimpleNamespace(at=None, amount=1),
    ]
    since = months_ago(6, datetime(2024, 4, 1, tzinfo=utc))
    series = monthly_series(rows, 'at', amount_attr='amount', since=since)
    assert series == [
        {'month': '2024-01-01', 'count': 1, 'total_amount': '5'},
        {'month': '2024-03-01', 'count': 2, 'total_amount': '12.5'},
    ]


def test_date_helpers():
    assert locale_date_string(datetime(2024, 3, 7)) == '3/7/2024'
    assert month_key(datetime(2024, 11, 30)) == '2024-11-01'
    end = parse_date('2024-02-10', end_of_day=True)
    assert (end.hour, end.minute) == (23, 59)
    with pytest.raises(ValueError):
        parse_date('10/02/2024')


def test_resolve_scope_pins_non_admins():
    scope = resolve_scope(Caller(7, 'user'), '99')
    assert scope == Owner(7)
    assert scope.kind == 'owner'
    assert scope.owner_id == 7
    assert scope.allows(7) and not scope.allows(99)


def test_resolve_scope_admin_variants():
    assert resolve_scope(Caller(1, 'admin')) == Admin(1)
    narrowed = resolve_scope(Caller(1, 'admin'), '5')
    assert narrowed == AdminAs(1, 5)
    assert narrowed.kind == 'admin_as'
    assert narrowed.owner_id == 5
    assert Admin(1).owner_id == 1
    with pytest.raises(ValidationError):
        resolve_scope(Caller(1, 'admin'), 'five')


def test_is_valid_rating():
    assert is_valid_rating(1) and is_valid_rating(5) and is_valid_rating('3')
    assert not is_valid_rating(0)
    assert not is_valid_rating(6)
    assert not is_valid_rating(2.5)
    assert not is_valid_rating(True)
    assert not is_valid_rating(None)


def test_validate_registration_reports_each_field():
    errors = validate_registration({'name': 'short', 'email': 'bad', 'password': 'weak', 'role': 'boss'})
    assert set(errors) == {'name', 'email', 'password', 'address', 'role'}
    assert validate_registration({
        'name': 'A Perfectly Long Valid Name',
        'email': 'ok@example.com',
        'password': 'Strong#Pass1',
        'address': 'Somewhere',
        'role': 'user',
    }) == {}
