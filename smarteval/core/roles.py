"""Role-based routing and menu construction."""

from __future__ import annotations

from smarteval.core.models import UserRole

_DASHBOARD_PATHS: dict[UserRole, str] = {
    UserRole.STUDENT: "/student",
    UserRole.PROFESSOR: "/professor",
    UserRole.ALUMNI: "/alumni",
}

_MENU_SECTIONS: dict[UserRole, tuple[str, ...]] = {
    UserRole.STUDENT: ("overview", "assessments", "tasks", "progress"),
    UserRole.PROFESSOR: ("overview", "assessments", "student-results", "alumni"),
    UserRole.ALUMNI: ("overview", "students"),
}

for _table in (_DASHBOARD_PATHS, _MENU_SECTIONS):
    _missing = set(UserRole) - set(_table)
    if _missing:
        raise RuntimeError(f"Role table is missing entries for {sorted(r.value for r in _missing)}")


def dashboard_path(role: UserRole) -> str:
    return _DASHBOARD_PATHS[role]


def menu_sections(role: UserRole) -> list[str]:
    return list(_MENU_SECTIONS[role])


def can_author_assessments(role: UserRole) -> bool:
    return role is UserRole.PROFESSOR
