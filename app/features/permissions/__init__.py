"""
Authorization and visibility scoping.

Decides, for one authenticated actor, which organizations and records are
visible, whether a record may be changed, and whether a privileged action is
allowed at all:

- actor: resolving an Actor from a user profile (with the bootstrap override)
- capabilities: the role x action table
- scope: VisibilityScope and the scope resolver
- collaboration: creator/collaborator narrowing for non-admin roles
- query: rendering a VisibilityScope as a SQLAlchemy filter
"""
