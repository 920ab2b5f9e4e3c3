# Celery instance is defined in lp_project/celery.py
# It creates celery_app object and points it to Django settings
from .celery import celery_app

# 'from lp_project import *', only exports celery_app
__all__ = ("celery_app",)

""" Workers start with "celery -A lp_project worker -l info",
    beat with "celery -A lp_project beat -l info" for the
    daily overdue-invoice sweep. """
