"""ORM model registry: import all models so Alembic autogenerate discovers them."""

from schools_api.models.district import District
from schools_api.models.import_job import ImportJob
from schools_api.models.school import School
from schools_api.models.user import User

__all__ = [
    "District",
    "ImportJob",
    "School",
    "User",
]
