"""Room synchronization services.

The room document is the only shared state of an online game. Everything in
this package reads or writes it through ``store`` and is safe to call from
HTTP routes, socket handlers and the background room ticker alike.
"""
