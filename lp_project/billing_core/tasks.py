from celery import shared_task


@shared_task  # register this function as a Celery task
def mark_overdue_invoices(today=None):
    # import services lazily to avoid circular imports at module import time
    from .services import mark_overdue_invoices as sweep

    # Beat passes no date; a manual run may pass an ISO date string
    return sweep(today)
