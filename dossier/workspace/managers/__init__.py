"""Data access managers for the client workspace.

Each module provides async functions that encapsulate one part of the
on-disk layout.  Managers take plain ``Path`` arguments and raise
``ClientWorkspaceError``, never user-facing notices -- that translation is
the coordinator's responsibility.
"""
