# Overview: Utility functions for permission lookups and validation.

import re

from .definitions import PERMISSION_DEFINITIONS

PERMISSION_NAME_PATTERN = re.compile(r"^[a-z0-9_-]+\.[a-z0-9_-]+$")


def get_all_permission_names():
    """Get list of all built-in permission names."""
    return [perm[0] for perm in PERMISSION_DEFINITIONS]


def get_permission_definition(name):
    """Get full definition for a built-in permission name."""
    for perm in PERMISSION_DEFINITIONS:
        if perm[0] == name:
            return {
                "name": perm[0],
                "module": perm[1],
                "action": perm[2],
                "display_name": perm[3],
                "description": perm[4],
            }
    return None


def is_valid_permission_name(name):
    """Check that a name follows the module.action convention."""
    return bool(name) and PERMISSION_NAME_PATTERN.match(name) is not None
