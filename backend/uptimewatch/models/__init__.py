"""Database models."""
from .target import Target
from .check import Check
from .incident import Incident
from .oncall import OnCallContact, OnCallSchedule

__all__ = ["Target", "Check", "Incident", "OnCallContact", "OnCallSchedule"]
