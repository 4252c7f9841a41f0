from django.conf import settings
from django.core.handlers.asgi import ASGIRequest
from django.http import StreamingHttpResponse
from django.views.decorators.http import require_GET
from rest_framework.decorators import api_view
from rest_framework.response import Response

from . import events
from .broadcaster import broadcaster


@require_GET
def event_stream(request):
    """Server-sent events: election-update, election-closed, vote-cast"""
    if isinstance(request, ASGIRequest):
        stream = events.async_event_stream
    else:
        stream = events.event_stream
    response = StreamingHttpResponse(
        stream(broadcaster, settings.NOTIFICATION_INTERVAL_SECONDS),
        content_type='text/event-stream',
    )
    response['Cache-Control'] = 'no-cache'
    response['X-Accel-Buffering'] = 'no'
    return response


@api_view(['GET'])
def current_state(request):
    """Polling alternative to the event stream"""
    state = events.current_state_event()
    if state is None:
        return Response({'event': None, 'data': None})
    event, data = state
    return Response({'event': event, 'data': data})
