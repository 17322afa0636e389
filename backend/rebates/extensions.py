# Overview: Shared Flask-SQLAlchemy and Flask-Migrate instances, bound in create_app().

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()

# compare_type lets autogenerate pick up Numeric precision changes on money columns
migrate = Migrate(compare_type=True)
