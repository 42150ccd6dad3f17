# Overview: Flask extension instances for the persistence handle and migrations.
# Bound to the app in create_app(); services only ever touch db.session.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

# Rows stay readable after commit so routes can serialize what a service returned.
db = SQLAlchemy(session_options={"expire_on_commit": False})
migrate = Migrate()
