from flask_sqlalchemy import SQLAlchemy

from boneyard.helpers.change_feed import ChangeFeed

db = SQLAlchemy()
change_feed = ChangeFeed()
