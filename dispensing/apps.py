"""
Dispensing — Application Configuration
"""

from django.apps import AppConfig


class DispensingConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'dispensing'
    verbose_name = 'Dispensing & Requisitions'
