# Overview: Flask extension instances for database, migrations and live feeds.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

from .services.feeds import ProductCache, NotificationFeed

db = SQLAlchemy()
migrate = Migrate()

# Process-wide read models; mutated only by the commit engine and reconciler
product_cache = ProductCache()
notification_feed = NotificationFeed()
