"""
apps.editor.signals
~~~~~~~~~~~~~~~~~~~
Notifications sent by :class:`~apps.editor.services.entity_crud.EntityCRUDController`.

entity_notification
    Sent after a successful create, update or delete.
    Keyword arguments: ``kind`` (``"created"``, ``"updated"`` or
    ``"deleted"``), ``entity_name``, ``entity_id``, ``section``, ``message``.

entity_error
    Sent instead of raising when an operation fails.
    Keyword arguments: ``code``, ``message``, ``entity_id``, ``section``.
"""
from django.dispatch import Signal

entity_notification = Signal()
entity_error = Signal()
