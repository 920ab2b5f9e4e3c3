import logging
from functools import partial

from django.db import transaction

logger = logging.getLogger(__name__)


def emit(signal, *, firm, user=None, **payload):
    """
    Central domain-event dispatcher.
    Receivers run only if the surrounding transaction commits, so a
    rolled-back operation never reaches audit subscribers.
    """
    logger.debug("queue event firm=%s keys=%s", firm.pk, sorted(payload))
    transaction.on_commit(
        partial(signal.send, sender=firm.__class__, firm=firm, user=user,
                **payload)
    )
