"""HR module — Employee and Department models, schemas and services."""

from sirtis.hr.models import Department, Employee

__all__ = ["Employee", "Department"]
