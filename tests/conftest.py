import pytest
from flask_jwt_extended import create_access_token

from minicrm import create_app, db
from minicrm.models import User


@pytest.fixture()
def app(tmp_path):
    app = create_app('minicrm.config.TestingConfig')
    app.config['UPLOAD_FOLDER'] = str(tmp_path)
    app.config['PUBLIC_BASE_URL'] = 'http://testserver'
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def make_user(app):
    counter = {'n': 0}

    def _make(role='user', name=None, password='Secret#Pass1', email=None):
        counter['n'] += 1
        user = User(
            name=name or f"Test Account Number {counter['n']:04d}",
            email=email or f"{role}{counter['n']}@example.com",
            address='1 Test Street',
            role=role,
        )
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user

    return _make


def auth_headers(user):
    token = create_access_token(identity=str(user.id), additional_claims={'role': user.role, 'name': user.name})
    return {'Authorization': f"Bearer {token}"}


@pytest.fixture()
def headers_for(app):
    return auth_headers
