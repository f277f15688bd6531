"""Celery tasks for MemoryHaze.

Tasks are explicitly imported here to register them with Celery.
No autodiscovery - all tasks must be imported in this module.

Usage in worker:
    from memoryhaze.tasks import send_gift_email
"""

from memoryhaze.tasks.send_gift_email import send_gift_email

__all__ = ["send_gift_email"]
