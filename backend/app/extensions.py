# Overview: Flask extension instances shared by the storefront (database handle and migrations).

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

# Bound to the application in create_app(); sessions are scoped to the app context.
db = SQLAlchemy()
migrate = Migrate()
