"""RBAC module/action registry and the fixed per-role permission matrix."""
from __future__ import annotations

from typing import Literal

PermissionAction = Literal["view", "add", "edit", "delete"]

ACTION_BY_METHOD: dict[str, PermissionAction] = {
    "GET": "view",
    "HEAD": "view",
    "OPTIONS": "view",
    "POST": "add",
    "PUT": "edit",
    "PATCH": "edit",
    "DELETE": "delete",
}

SYSTEM_MODULES: list[dict[str, str]] = [
    {"key": "attendance", "name": "Attendance"},
    {"key": "reports", "name": "Training Reports"},
    {"key": "trainings", "name": "Trainings"},
    {"key": "files", "name": "Files"},
]


def _full_permissions() -> dict[str, bool]:
    return {"view": True, "add": True, "edit": True, "delete": True}


def _no_access() -> dict[str, bool]:
    return {"view": False, "add": False, "edit": False, "delete": False}


def _module_defaults(fill: dict[str, bool]) -> dict[str, dict[str, bool]]:
    return {module["key"]: dict(fill) for module in SYSTEM_MODULES}


ROLE_PERMISSIONS: dict[str, dict[str, dict[str, bool]]] = {
    "authority": _module_defaults(_full_permissions()),
    "trainer": _module_defaults(_full_permissions()),
    "trainee": {
        **_module_defaults(_no_access()),
        # Trainees check in (POST mark/batch) and watch the session status.
        "attendance": {"view": True, "add": True, "edit": False, "delete": False},
        "files": {"view": True, "add": True, "edit": False, "delete": False},
    },
}


def has_permission(role: str, module: str, action: str) -> bool:
    permissions = ROLE_PERMISSIONS.get(role)
    if not permissions:
        return False
    module_permissions = permissions.get(module)
    if not module_permissions:
        return False
    return bool(module_permissions.get(action, False))
