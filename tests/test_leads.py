import re

from minicrm import db
from minicrm.models import Lead, LEAD_STATUSES


def _lead(owner, **kwargs):
    lead = Lead(title=kwargs.pop('title', 'Lead'), description='desc', user_id=owner.id,
                created_by=owner.id, **kwargs)
    db.session.add(lead)
    db.session.commit()
    return lead


def test_create_lead_defaults(client, make_user, headers_for):
    user = make_user()
    r = client.post('/api/leads', json={'description': 'Follow up call'}, headers=headers_for(user))
    assert r.status_code == 201, r.get_json()
    body = r.get_json()
    assert re.fullmatch(r'Lead - \d{1,2}/\d{1,2}/\d{4}', body['title'])
    assert body['status'] == 'New'
    assert body['value'] == 0
    assert body['user_id'] == user.id
    assert body['created_by'] == user.id

    stored = db.session.get(Lead, body['id'])
    assert stored.user_id == user.id
    assert stored.title == body['title']


def test_create_lead_requires_description(client, make_user, headers_for):
    r = client.post('/api/leads', json={'title': 'No description'}, headers=headers_for(make_user()))
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Description is required'


def test_create_lead_rejects_unknown_status(client, make_user, headers_for):
    r = client.post('/api/leads', json={'description': 'x', 'status': 'Won'}, headers=headers_for(make_user()))
    assert r.status_code == 400
    assert 'status' in r.get_json()['errors']


def test_create_lead_unparseable_value_is_zero(client, make_user, headers_for):
    r = client.post('/api/leads', json={'description': 'x', 'value': 'lots'}, headers=headers_for(make_user()))
    assert r.status_code == 201
    assert r.get_json()['value'] == 0


def test_leads_require_token(client):
    r = client.get('/api/leads')
    assert r.status_code == 401
    assert r.get_json() == {'error': 'Access token required'}


def test_invalid_token_rejected(client):
    r = client.get('/api/leads', headers={'Authorization': 'Bearer 7'})
    assert r.status_code == 401
    assert r.get_json() == {'error': 'Invalid token'}


def test_list_leads_scoped_to_owner(client, make_user, headers_for):
    alice, bob = make_user(), make_user()
    _lead(alice, title='Alice one')
    _lead(alice, title='Alice two')
    _lead(bob, title='Bob one')

    r = client.get('/api/leads?userId=%d' % bob.id, headers=headers_for(alice))
    body = r.get_json()
    assert r.status_code == 200
    assert {lead['title'] for lead in body['leads']} == {'Alice one', 'Alice two'}
    assert body['pagination'] == {'page': 1, 'limit': 10, 'total': 2, 'totalPages': 1}


def test_admin_sees_all_and_can_narrow(client, make_user, headers_for):
    admin, alice, bob = make_user('admin'), make_user(), make_user()
    _lead(alice)
    _lead(bob)
    _lead(bob)

    everything = client.get('/api/leads', headers=headers_for(admin)).get_json()
    assert everything['pagination']['total'] == 3

    narrowed = client.get(f'/api/leads?userId={bob.id}', headers=headers_for(admin)).get_json()
    assert narrowed['pagination']['total'] == 2
    assert all(lead['user_id'] == bob.id for lead in narrowed['leads'])


def test_list_filters_narrow_total(client, make_user, headers_for):
    user = make_user()
    _lead(user, title='Call Acme', status='New')
    _lead(user, title='Email acme team', status='Contacted')
    _lead(user, title='Other', status='New')

    r = client.get('/api/leads?search=ACME&status=New', headers=headers_for(user)).get_json()
    assert [lead['title'] for lead in r['leads']] == ['Call Acme']
    assert r['pagination']['total'] == 1


def test_pagination_window(client, make_user, headers_for):
    user = make_user()
    for i in range(7):
        _lead(user, title=f'Lead {i}')

    r = client.get('/api/leads?page=3&limit=3', headers=headers_for(user)).get_json()
    assert len(r['leads']) == 1
    assert r['pagination'] == {'page': 3, 'limit': 3, 'total': 7, 'totalPages': 3}

    empty = client.get('/api/leads?status=Lost', headers=headers_for(user)).get_json()
    assert empty['leads'] == []
    assert empty['pagination']['totalPages'] == 0


def test_get_lead_out_of_scope_is_404(client, make_user, headers_for):
    alice, bob = make_user(), make_user()
    lead = _lead(bob)

    r = client.get(f'/api/leads/{lead.id}', headers=headers_for(alice))
    assert r.status_code == 404
    missing = client.get('/api/leads/99999', headers=headers_for(alice))
    assert r.get_json() == missing.get_json() == {'error': 'Lead not found or access denied'}


def test_update_lead_partial(client, make_user, headers_for):
    user = make_user()
    lead = _lead(user, title='Before', value=100)

    r = client.put(f'/api/leads/{lead.id}', json={'status': 'Qualified'}, headers=headers_for(user))
    assert r.status_code == 200
    body = r.get_json()
    assert body['status'] == 'Qualified'
    assert body['title'] == 'Before'
    assert body['value'] == 100


def test_non_owner_cannot_update_or_delete(client, make_user, headers_for):
    alice, bob = make_user(), make_user()
    lead = _lead(bob, title='Bob lead')

    r = client.put(f'/api/leads/{lead.id}', json={'title': 'Hijacked'}, headers=headers_for(alice))
    assert r.status_code == 404

    client.delete(f'/api/leads/{lead.id}', headers=headers_for(alice))
    db.session.expire_all()
    assert db.session.get(Lead, lead.id).title == 'Bob lead'


def test_delete_lead_absent_reports_success(client, make_user, headers_for):
    user = make_user()
    lead = _lead(user)

    r = client.delete(f'/api/leads/{lead.id}', headers=headers_for(user))
    assert r.status_code == 200
    assert db.session.get(Lead, lead.id) is None

    again = client.delete(f'/api/leads/{lead.id}', headers=headers_for(user))
    assert again.status_code == 200
    assert again.get_json() == {'message': 'Lead deleted successfully'}


def test_leads_stats_for_owner(client, make_user, headers_for):
    user, other = make_user(), make_user()
    _lead(user, value=100)
    _lead(user, value=200, status='Converted')
    _lead(user, value=0)
    _lead(other, value=999, status='Converted')

    r = client.get('/api/leads/stats', headers=headers_for(user))
    body = r.get_json()
    assert r.status_code == 200
    assert body['total_leads'] == 3
    assert body['total_value'] == '300.00'
    assert body['converted_leads'] == 1
    assert body['conversion_rate'] == '33.33'
    assert list(body['status_breakdown']) == list(LEAD_STATUSES)
    assert body['status_breakdown']['Lost'] == 0
    assert sum(m['count'] for m in body['monthly_growth']) == 3


def test_leads_stats_empty(client, make_user, headers_for):
    body = client.get('/api/leads/stats', headers=headers_for(make_user())).get_json()
    assert body['total_leads'] == 0
    assert body['conversion_rate'] == '0'
    assert body['monthly_growth'] == []
    assert set(body['status_breakdown'].values()) == {0}


def test_leads_for_user_is_admin_only(client, make_user, headers_for):
    admin, user = make_user('admin'), make_user()
    _lead(user)

    denied = client.get(f'/api/leads/user/{user.id}', headers=headers_for(user))
    assert denied.status_code == 403
    assert denied.get_json() == {'error': 'Admin access required'}

    r = client.get(f'/api/leads/user/{user.id}', headers=headers_for(admin))
    assert r.status_code == 200
    assert r.get_json()['pagination']['total'] == 1


def test_assign_lead(client, make_user, headers_for):
    admin, user, rep = make_user('admin'), make_user(), make_user()
    lead = _lead(user)

    r = client.put(f'/api/leads/{lead.id}/assign', json={'assigned_to': rep.id}, headers=headers_for(admin))
    assert r.status_code == 200
    assert r.get_json()['assigned_to'] == rep.id
    # ownership is unchanged by assignment
    assert r.get_json()['user_id'] == user.id

    bad = client.put(f'/api/leads/{lead.id}/assign', json={'assigned_to': 424242}, headers=headers_for(admin))
    assert bad.status_code == 400

    forbidden = client.put(f'/api/leads/{lead.id}/assign', json={'assigned_to': rep.id}, headers=headers_for(user))
    assert forbidden.status_code == 403


def test_lead_text_fields_must_be_strings(client, make_user, headers_for):
    owner = make_user()
    headers = headers_for(owner)
    r = client.post('/api/leads', json={'description': 5}, headers=headers)
    assert r.status_code == 400
    assert r.get_json() == {'errors': {'description': 'description must be a string'}}

    lead = _lead(owner)
    bad = client.put(f'/api/leads/{lead.id}', json={'title': ['x']}, headers=headers)
    assert bad.status_code == 400
    assert 'title' in bad.get_json()['errors']


def test_unexpected_errors_render_json(app, client):
    @app.route('/api/explode')
    def explode():
        raise RuntimeError('kaboom')

    r = client.get('/api/explode')
    assert r.status_code == 500
    assert r.is_json
    assert r.get_json() == {'error': 'Internal server error'}
