"""Database models."""

from medtech.models.articles import articles
from medtech.models.consultations import consultations
from medtech.models.metadata import metadata
from medtech.models.profiles import profiles
from medtech.models.specialists import specialists
from medtech.models.verification_requests import verification_requests

__all__ = [
    "articles",
    "consultations",
    "metadata",
    "profiles",
    "specialists",
    "verification_requests",
]
