"""
famtree catalog package.

Layered the same way throughout:

  catalog/repositories/  pure I/O: loading snapshots from and persisting to JSON files.
  catalog/services/      business logic: orphan detection, trees, stats, validation.
  catalog/errors.py      error taxonomy shared by services and the HTTP layer.

``FamilyCatalog`` (in ``famtree.py``) is the integration point: it creates
repository and service instances in ``__init__`` and exposes them as public
attributes (e.g. ``catalog.orphan_service``).  Route handlers in
``famtree_web.py`` and the CLI call these services directly.
"""
