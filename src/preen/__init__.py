"""Preen — live-reloading preview server for markdown directories.

Renders a folder of markdown the way GitHub does and reloads open
browser tabs the moment a file (or an image it embeds) changes.

Quick start::

    import preen

    preen.preview("docs/")

Or from the shell::

    preen docs/ --port 4000 --context owner/repo

Built on:

    chirp       Web framework     (routes, middleware)
    pounce      ASGI server       (serves the app)
    patitas     Markdown parser   (offline rendering)
    watchfiles  File watching     (change events)

"""

# PEP 703: Declare this module as free-threading safe
_Py_mod_gil = 0

__version__ = "0.1.0"
__all__ = [
    "PreenConfig",
    "__version__",
    "create_app",
    "preview",
]


def __getattr__(name: str) -> object:
    """Lazy imports for the public API.

    Keeps ``import preen`` fast.
    """
    if name == "PreenConfig":
        from preen.config import PreenConfig

        return PreenConfig

    if name == "preview":
        from preen.app import preview

        return preview

    if name == "create_app":
        from preen.app import create_app

        return create_app

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
