"""
Capability-based authorization of requests.

This module provides :func:`scoped`, a decorator factory used to protect Flask
routes for which authorization is required. Pass a required capability and/or
a custom authorizer function. The call signature of the authorizer function
should be: ``(context: domain.AuthContext, *args, **kwargs) -> bool``, where
`*args` and `**kwargs` are the arguments passed by Flask to the route (e.g.
the URL parameters).

.. code-block:: python

   from sessionauth.auth.decorators import scoped


   def is_owner(context, user_id: int, **kwargs) -> bool:
       return context.user.user_id == user_id


   @blueprint.route('/<int:user_id>/profile', methods=['POST'])
   @scoped('edit_users', authorizer=is_owner)
   def edit_profile(user_id: int):
       ...

When the decorated route function is called...

- If there is no authenticated user on the request, :class:`Unauthorized` is
  raised.
- If a required capability was given, the user must have it.
- If an authorizer was given, it must return ``True``.
- Otherwise :class:`Forbidden` is raised.

"""

import logging
from typing import Optional, Callable, Any
from functools import wraps

from flask import request
from werkzeug.exceptions import Unauthorized, Forbidden

logger = logging.getLogger(__name__)


def scoped(required: Optional[str] = None,
           authorizer: Optional[Callable] = None,
           context_args: bool = False) -> Callable:
    """
    Generate a decorator to enforce authorization requirements.

    Parameters
    ----------
    required : str
        Capability required of the current user. If not provided, only
        authentication is enforced.
    authorizer : function
        Additional check, called as ``authorizer(context, *args, **kwargs)``.
    context_args : bool
        If ``True``, the route's positional and keyword argument values are
        passed as context to the capability check (for meta capabilities
        such as ``edit_post`` of a given post).

    Returns
    -------
    function

    """
    def protector(func: Callable) -> Callable:
        """Decorator that provides capability enforcement."""
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            """
            Check the request's auth context before executing the route.

            Raises
            ------
            :class:`.Unauthorized`
                No authenticated user.
            :class:`.Forbidden`
                Missing capability, or the authorizer returned ``False``.

            """
            context = getattr(request, 'auth', None)
            if context is None or not context.is_authenticated:
                logger.debug('No authenticated user; aborting')
                raise Unauthorized('Not logged in')

            if required:
                cap_args = (list(args) + list(kwargs.values())) \
                    if context_args else []
                if not context.can(required, *cap_args):
                    logger.debug('User %s lacks %s',
                                 context.user.user_id, required)
                    raise Forbidden('Access denied')

            if authorizer and not authorizer(context, *args, **kwargs):
                logger.debug('Authorizer returned negative result')
                raise Forbidden('Access denied')

            logger.debug('Request is authorized, proceeding')
            return func(*args, **kwargs)
        return wrapper
    return protector
