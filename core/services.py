"""
Core — Audit Service

Every service that changes stock, catalogue or order state records who
did it here. Ledger movements already carry quantities; the audit row
carries the before/after picture of the record that was touched.

@file core/services.py
"""

import logging
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from django.db.models import QuerySet
from django.forms.models import model_to_dict

from core.models import AuditLog

logger = logging.getLogger('medistock')


def _to_json(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [str(v.pk) if hasattr(v, 'pk') else _to_json(v) for v in value]
    return str(value)


class AuditService:
    """Write and read the audit trail."""

    @staticmethod
    def log(
        *,
        actor,
        action: str,
        model_name: str,
        object_id: str,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        ip_address: str | None = None,
    ) -> AuditLog:
        entry = AuditLog.objects.create(
            actor=actor,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            old_values=old_values,
            new_values=new_values,
            ip_address=ip_address,
        )
        logger.debug(
            'Audit %s %s:%s by %s',
            action, model_name, object_id, getattr(actor, 'pk', None),
        )
        return entry

    @staticmethod
    def snapshot(instance, fields=None) -> dict[str, Any]:
        """JSON-safe dict of a model instance (FKs as raw ids)."""
        data = model_to_dict(instance, fields=fields)
        return {key: _to_json(value) for key, value in data.items()}

    @staticmethod
    def changes(
        old: dict[str, Any] | None,
        new: dict[str, Any],
    ) -> tuple[dict[str, Any], dict[str, Any]]:
        """
        Reduce two snapshots to the keys whose value differs.

        Returns ``({}, {})`` when nothing changed, so callers can skip
        writing an audit row for a no-op save.
        """
        if old is None:
            return {}, dict(new)
        keys = [k for k in new if old.get(k) != new[k]]
        return {k: old.get(k) for k in keys}, {k: new[k] for k in keys}

    @staticmethod
    def history(model_name: str, object_id) -> QuerySet:
        """Audit rows for one record, newest first."""
        return (
            AuditLog.objects
            .filter(model_name=model_name, object_id=str(object_id))
            .select_related('actor')
            .order_by('-timestamp')
        )

    @staticmethod
    def get_client_ip(request) -> str | None:
        x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
        if x_forwarded_for:
            return x_forwarded_for.split(',')[0].strip()
        return request.META.get('REMOTE_ADDR')
