"""
Permission code model.

Two code conventions coexist in the backend: ``resource:action`` and
``RESOURCE_ACTION``. Capability queries check both, so every query here
produces a list of candidate codes that are OR-ed by the resolver.
"""
from typing import List, Optional, Tuple

from mdm_console.rbac.constants import ACTION_SUFFIXES, PAGE_VIEW_ACTION


def candidate_codes(resource_code: str, action: str) -> List[str]:
    """Codes that satisfy ``action`` on ``resource_code``, colon form first."""
    try:
        suffixes = ACTION_SUFFIXES[action]
    except KeyError:
        raise ValueError(f"Unknown action '{action}'") from None

    upper = resource_code.upper()
    return [f"{resource_code}:{action}"] + [f"{upper}_{suffix}" for suffix in suffixes]


def page_view_codes(page_code: str) -> List[str]:
    """Codes that make a page visible: ``page:read`` or ``page_VIEW``."""
    return [f"{page_code}:{PAGE_VIEW_ACTION}"] + [
        f"{page_code}_{suffix}" for suffix in ACTION_SUFFIXES[PAGE_VIEW_ACTION]
    ]


def parse_code(code: str) -> Optional[Tuple[str, str]]:
    """
    Split a permission code into (resource, action).

    ``roles:update`` -> ("roles", "update")
    ``ROLES_VIEW``   -> ("roles", "read")
    Returns None for codes following neither convention.
    """
    if not code:
        return None

    if ":" in code:
        resource, _, action = code.partition(":")
        if resource and action:
            return resource, action
        return None

    resource, sep, suffix = code.rpartition("_")
    if not sep or not resource or not suffix:
        return None

    for action, suffixes in ACTION_SUFFIXES.items():
        if suffix in suffixes:
            return resource.lower(), action
    return resource.lower(), suffix.lower()
