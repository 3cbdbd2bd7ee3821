"""
Role-based section access.

Every role has a default set of portal sections. A user may carry an explicit
list in User.permissions, which replaces the defaults. Coordinators are
checked against their effective role, so a lapsed grant loses the
coordinator sections immediately.
"""

from .coordinators import get_effective_role


ROLE_DEFAULTS = {
    'admin': [
        'dashboard',
        'academic-structure',
        'semesters',
        'branches',
        'subjects',
        'library',
        'timetable',
        'notices',
        'attendance',
        'exams',
        'users',
        'contacts',
        'activity',
    ],
    'hod': [
        'dashboard',
        'profile',
        'add-teacher',
        'manage-teachers',
        'notices',
        'materials',
        'library',
        'attendance',
        'exams',
        'reports',
        'timetable',
        'users',
    ],
    'teacher': [
        'dashboard',
        'materials',
        'library',
        'tasks',
        'notices',
        'attendance',
        'exams',
        'profile',
        'users',
    ],
    'coordinator': [
        'dashboard',
        'tasks',
        'notices',
        'attendance',
        'profile',
        'users',
        'activity',
    ],
    'student': [
        'dashboard',
        'tasks',
        'notices',
        'library',
        'attendance',
        'exams',
        'profile',
    ],
}


def get_role_defaults(role):
    """Return the default section keys for a role (empty for unknown roles)."""
    return list(ROLE_DEFAULTS.get(role, []))


def get_user_sections(user, now=None):
    """
    Sections available to a user.

    Explicit permissions win over role defaults. A coordinator with an
    expired grant falls back to the defaults of the base role.
    """
    role = get_effective_role(user, now)
    if role != user.role:
        return get_role_defaults(role)
    if user.permissions:
        return list(user.permissions)
    return get_role_defaults(role)


def has_section_access(user, section, now=None):
    """Check if the user may open the given portal section."""
    if user is None or not user.is_account_active():
        return False
    return section in get_user_sections(user, now)
