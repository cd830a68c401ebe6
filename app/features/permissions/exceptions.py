"""
Errors raised by the authorization core.

Access denial is never an exception here: checks return False and scopes come
back empty. These errors mean the decision itself could not be made.
"""


class PermissionsError(Exception):
    """Base class for authorization core errors."""


class ActorNotFound(PermissionsError):
    """No user profile exists for the authenticated principal."""
    
    def __init__(self, principal_id: str):
        self.principal_id = principal_id
        super().__init__(f"No user profile for principal {principal_id!r}")


class HierarchyCorruption(PermissionsError):
    """The organization parent relation contains a cycle."""
    
    def __init__(self, organization_id: str, path: list[str | None] | None = None):
        self.organization_id = organization_id
        self.path = path or []
        super().__init__(f"Organization hierarchy cycle at {organization_id!r}: {self.path}")
