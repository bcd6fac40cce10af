# seed_climbs.py
import random

from boneyard import create_app
from boneyard.extensions import db
from boneyard.models import Climb
from boneyard.helpers.grades import GRADE_TAGS, COLOR_OPTIONS

GYM_ID = "urbana boulders"
SECTIONS = ["front", "cave", "slab", "barrel", "mural", "lil roofs", "prow", "top out", "overlap",
            "back", "roof", "curvy"]


def main(num_climbs=60):
    app = create_app()
    with app.app_context():
        db.create_all()

        existing = Climb.query.filter_by(gym_id=GYM_ID).count()
        print(f"Existing climbs: {existing}")

        for i in range(num_climbs):
            c = Climb(
                name=f"Test Climb {existing + i + 1}",
                grade=random.choice(GRADE_TAGS),
                color=random.choice(COLOR_OPTIONS),
                x=round(random.uniform(0, 100), 2),
                y=round(random.uniform(0, 100), 2),
                gym_id=GYM_ID,
                section=random.choice(SECTIONS),
                updated_by="seed script",
            )
            db.session.add(c)

        db.session.commit()
        total = Climb.query.filter_by(gym_id=GYM_ID).count()
        print(f"Now have {total} climbs in the DB.")

if __name__ == "__main__":
    main()
