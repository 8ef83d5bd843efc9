"""Client workspace persistence layer.

A workspace is a plain directory on the user's machine.  Each direct
subdirectory holding a ``metadata.json`` is a client record with
``documents/``, ``media/`` and ``Conversations/`` folders.
"""
