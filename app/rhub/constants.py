"""
Central constants for the ResilienceHub API.
"""
from __future__ import annotations

# Permission keys granted per role; scripts/init_db.py seeds these.
PERMISSIONS = {
    "clients.view": "Clients: view",
    "clients.manage": "Clients: create accounts",
    "plans.manage": "Subscription plans: manage",
    "resources.create": "Resources: create",
    "resources.assign": "Resources: assign to clients",
    "library.global": "Library: share global items",
    "audit.view": "Audit trail: view",
}

ROLE_PERMISSIONS = {
    "client": (),
    "therapist": (
        "clients.view",
        "clients.manage",
        "resources.create",
        "resources.assign",
        "library.global",
    ),
    "admin": tuple(PERMISSIONS),
}

ROLE_NAMES = {
    "client": "Client",
    "therapist": "Therapist",
    "admin": "Administrator",
}

# Categories offered by the resource library before any resource defines its own.
DEFAULT_RESOURCE_CATEGORIES = (
    "cbt-basics",
    "anxiety",
    "depression",
    "stress-management",
    "mindfulness",
    "emotional-regulation",
    "relationships",
    "trauma",
    "self-care",
)
