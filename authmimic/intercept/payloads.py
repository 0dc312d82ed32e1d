"""Fixed payloads returned by role-scoped listing rules.

Small on purpose: enough rows for list-rendering tests, never a data model.
Tuples keep them immutable; builders copy them into the response body.
"""

from __future__ import annotations

from typing import Any

OWNER_ESTABLISHMENTS: tuple[dict[str, Any], ...] = (
    {
        "id": "mock-est-soi6-001",
        "name": "Test Bar Soi 6",
        "category": "bar",
        "zone": "soi6",
        "status": "approved",
        "is_vip": False,
        "ownership_role": "owner",
        "permissions": {"can_edit_info": True, "can_edit_pricing": True, "can_edit_photos": True},
        "owned_since": "2024-01-15T10:00:00.000Z",
    },
    {
        "id": "mock-est-walking-002",
        "name": "Test Gogo Walking Street",
        "category": "gogo",
        "zone": "walking_street",
        "status": "approved",
        "is_vip": True,
        "ownership_role": "manager",
        "permissions": {"can_edit_info": True, "can_edit_pricing": False, "can_edit_photos": True},
        "owned_since": "2024-03-02T18:30:00.000Z",
    },
)

ADMIN_ESTABLISHMENTS: tuple[dict[str, Any], ...] = (
    {
        "id": "mock-est-soi6-001",
        "name": "Test Bar Soi 6",
        "category": "bar",
        "zone": "soi6",
        "status": "approved",
        "address": "123 Test Street, soi6",
    },
    {
        "id": "mock-est-treetown-003",
        "name": "Test Bar Tree Town",
        "category": "bar",
        "zone": "tree_town",
        "status": "pending",
        "address": "45 Test Street, tree town",
    },
    {
        "id": "mock-est-beach-004",
        "name": "Test Restaurant Beach Road",
        "category": "restaurant",
        "zone": "beach_road",
        "status": "rejected",
        "address": "7 Test Street, beach road",
    },
)

ADMIN_EMPLOYEES: tuple[dict[str, Any], ...] = (
    {"id": "mock-emp-001", "name": "Test Employee One", "nickname": "One", "status": "pending"},
    {"id": "mock-emp-002", "name": "Test Employee Two", "nickname": "Two", "status": "approved"},
)

OWNERSHIP_REQUESTS: tuple[dict[str, Any], ...] = (
    {
        "id": "mock-own-req-001",
        "establishment_id": "mock-est-treetown-003",
        "status": "pending",
        "request_message": "I am the owner of this bar.",
        "created_at": "2024-04-10T09:00:00.000Z",
    },
)

FAVORITES: tuple[dict[str, Any], ...] = (
    {"id": "mock-fav-001", "employee_id": "mock-emp-002", "created_at": "2024-05-01T12:00:00.000Z"},
    {"id": "mock-fav-002", "employee_id": "mock-emp-001", "created_at": "2024-05-03T20:15:00.000Z"},
)

GAMIFICATION_BADGES: tuple[dict[str, str], ...] = (
    {"id": "first_review", "name": "First Review", "icon": "star"},
    {"id": "explorer", "name": "Explorer", "icon": "map"},
)

DEFAULT_XP = 150
DEFAULT_LEVEL = 2
DEFAULT_STREAK = 3
DEFAULT_RANK = 42


def rows(fixture: tuple[dict[str, Any], ...]) -> list[dict[str, Any]]:
    return [dict(row) for row in fixture]
