
import pytest

from app import create_app, db


@pytest.fixture
def app():
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'SUPABASE_URL': 'https://example.supabase.co',
        'SUPABASE_SERVICE_ROLE_KEY': 'service-key',
        'SUPABASE_AVATAR_BUCKET': 'avatars',
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    with app.test_client() as c:
        yield c


def make_member(client, **kwargs):
    payload = {
        'name': 'Nguyen Van A',
        'phone': '0901000001',
        'email': 'a@example.com',
        'plan': '1 tháng - Flex',
        'status': 'active',
        'checkinsThisMonth': 0,
    }
    payload.update(kwargs)
    res = client.post('/api/members', json=payload)
    assert res.status_code == 201, res.data
    return res.get_json()
