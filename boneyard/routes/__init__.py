from .climbs import climbs_bp
from .logs import logs_bp
from .grade_votes import grade_votes_bp
from .videos import videos_bp
from .profiles import profiles_bp

def register_blueprints(app):
    app.register_blueprint(climbs_bp)
    app.register_blueprint(logs_bp)
    app.register_blueprint(grade_votes_bp)
    app.register_blueprint(videos_bp)
    app.register_blueprint(profiles_bp)
