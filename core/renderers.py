"""
Core — Response Renderer

Wraps successful responses in the standard envelope:
  { "success": true, "data": ..., "meta": ... }

@file core/renderers.py
"""

from rest_framework.renderers import JSONRenderer


def wrap_success(data):
    """Build the success envelope; paginated payloads carry their counters in meta."""
    if isinstance(data, dict) and 'results' in data:
        return {
            'success': True,
            'data': data['results'],
            'meta': {
                'count': data.get('count'),
                'next': data.get('next'),
                'previous': data.get('previous'),
            },
        }
    return {'success': True, 'data': data}


class StandardJSONRenderer(JSONRenderer):
    """Wraps API responses that are not already enveloped."""

    def render(self, data, accepted_media_type=None, renderer_context=None):
        response = renderer_context.get('response') if renderer_context else None

        if response is not None and response.status_code >= 400:
            return super().render(data, accepted_media_type, renderer_context)
        if isinstance(data, dict) and 'success' in data:
            return super().render(data, accepted_media_type, renderer_context)
        return super().render(wrap_success(data), accepted_media_type, renderer_context)
