"""Serve a perch ASGI app with pounce.

pounce's ``run()`` takes an import string, but perch hands over a live
app object, so ``pounce.Server`` is used directly.
"""


def run_server(
    app: object,
    host: str,
    port: int,
    *,
    reload: bool = False,
    workers: int = 1,
) -> None:
    """Start a pounce server for *app*.

    Args:
        app: ASGI callable (a ``PodletServer`` or ``App``).
        host: Bind host address.
        port: Bind port number.
        reload: Restart on source changes (development).
        workers: Worker count; forced to 1 when reloading.
    """
    from pounce.config import ServerConfig
    from pounce.server import Server

    config = ServerConfig(
        host=host,
        port=port,
        workers=1 if reload else workers,
        reload=reload,
    )
    Server(config, app).run()
