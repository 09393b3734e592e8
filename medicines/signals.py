"""
Medicines — Signals

Audit trail for catalogue edits. Updates record only the fields that
changed (price, reorder level, identity); saves that change nothing are
not audited.

@file medicines/signals.py
"""

from django.db.models.signals import post_save, pre_save
from django.dispatch import receiver

from core.constants import AUDIT_ACTION_CREATE, AUDIT_ACTION_UPDATE
from core.services import AuditService

from .models import Medicine

_medicine_pre: dict = {}


@receiver(pre_save, sender=Medicine)
def medicine_pre_save(sender, instance, **kwargs):
    if not instance.pk:
        return
    old = Medicine.objects.filter(pk=instance.pk).first()
    if old is not None:
        _medicine_pre[str(instance.pk)] = AuditService.snapshot(old)


@receiver(post_save, sender=Medicine)
def medicine_post_save(sender, instance, created, **kwargs):
    old, new = AuditService.changes(
        None if created else _medicine_pre.pop(str(instance.pk), None),
        AuditService.snapshot(instance),
    )
    if not new:
        return
    AuditService.log(
        actor=getattr(instance, '_current_user', None),
        action=AUDIT_ACTION_CREATE if created else AUDIT_ACTION_UPDATE,
        model_name='Medicine',
        object_id=str(instance.pk),
        old_values=old or None,
        new_values=new,
    )
