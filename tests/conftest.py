import pytest

from boneyard import create_app
from boneyard.extensions import db, change_feed
from boneyard.models import Climb, ClimbLog
from boneyard.routes import register_blueprints
from boneyard.helpers.leaderboard_cache import invalidate_leaderboard_cache

ADMIN_EMAIL = "setter@boneyard.test"


@pytest.fixture
def app(tmp_path):
    app = create_app(
        {
            "TESTING": True,
            # File DB: the stats aggregator opens its own connection
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'test.db'}",
            "UPLOAD_FOLDER": str(tmp_path / "uploads"),
            "STORAGE_BASE_URL": "/uploads",
            "ADMIN_EMAILS": ADMIN_EMAIL,
            "FEED_RETRY_BASE_DELAY": 0.0,
            "LEADERBOARD_CACHE_TTL": 60,
        }
    )
    register_blueprints(app)

    with app.app_context():
        db.create_all()

    invalidate_leaderboard_cache()
    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()
    invalidate_leaderboard_cache()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield


@pytest.fixture
def feed_spy(app):
    """Collects every (climb_id, event) the change feed publishes."""
    events = []

    def spy(climb_id, event):
        events.append((climb_id, event))

    change_feed.subscribe(spy)
    yield events
    change_feed.unsubscribe(spy)


def login(client, user_id, email=None):
    with client.session_transaction() as sess:
        sess["user_id"] = user_id
        sess["user_email"] = email or f"{user_id}@boneyard.test"


def login_admin(client, user_id="admin-1"):
    login(client, user_id, ADMIN_EMAIL)


def make_climb(**kwargs) -> Climb:
    """Insert a climb directly (needs an app context)."""
    fields = {
        "name": "Crimp City",
        "grade": "Green Tag (V4–6)",
        "color": "green",
        "x": 40.0,
        "y": 55.0,
        "gym_id": "urbana boulders",
        "section": "cave",
    }
    fields.update(kwargs)
    climb = Climb(**fields)
    db.session.add(climb)
    db.session.commit()
    return climb


def add_log(climb_id, user_id, rating=None, comment="sent it", grade=None) -> ClimbLog:
    log = ClimbLog(
        climb_id=climb_id,
        user_id=user_id,
        email=f"{user_id}@boneyard.test",
        comment=comment,
        rating=rating,
        grade=grade,
    )
    db.session.add(log)
    db.session.commit()
    return log
