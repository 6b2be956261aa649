"""Built-in authentication schemes.

Each scheme lives in its own subpackage and exports one
:class:`~authgate.auth.base.AuthScheme` subclass. Schemes are registered
with :class:`~authgate.auth.manager.AuthManager` by
:func:`~authgate.auth.manager.create_default_manager`.
"""
