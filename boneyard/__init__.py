from flask import Flask
from .config import Config
from .extensions import db, change_feed
from .models import ClimbLog
from .commands import register_commands
from boneyard.helpers.change_feed import watch_model
from boneyard.helpers.stats import update_climb_stats
from boneyard.helpers.leaderboard_cache import drop_leaderboard_on_log_change


def create_app(overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    db.init_app(app)
    change_feed.init_app(app)

    # Log writes -> change feed -> stats aggregator / leaderboard cache
    watch_model(db.session, ClimbLog, change_feed)
    change_feed.subscribe(update_climb_stats)
    change_feed.subscribe(drop_leaderboard_on_log_change)

    register_commands(app)

    return app
