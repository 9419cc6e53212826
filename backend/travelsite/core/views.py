import logging

from django.conf import settings
from django.db import DatabaseError, connection
from django.http import JsonResponse
from django.views.decorators.cache import never_cache
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from .models import MediaItem
from .status import get_setup_status

logger = logging.getLogger(__name__)

MEDIA_INDEX_COLUMNS = ['deleted_at', 'type', 'uploaded_at']


def _media_index_present() -> bool:
    with connection.cursor() as cursor:
        constraints = connection.introspection.get_constraints(cursor, MediaItem._meta.db_table)
    return any(
        info.get('index') and list(info.get('columns') or []) == MEDIA_INDEX_COLUMNS
        for info in constraints.values()
    )


def home(request):
    return JsonResponse({'status': 'ok', 'site': settings.SITE_NAME})


def setup(request):
    # Landing point for the onboarding wizard; the gate only lets visitors
    # reach it while setup is incomplete.
    return JsonResponse({
        **get_setup_status(),
        'next': 'python manage.py setup_status --complete',
    })


@never_cache
@api_view(['GET'])
@permission_classes([AllowAny])
def setup_check(request):
    return Response(get_setup_status())


@never_cache
@api_view(['GET'])
@permission_classes([AllowAny])
def check_index(request):
    try:
        present = _media_index_present()
    except DatabaseError:
        logger.exception('Error checking media index')
        return Response({'error': 'An unexpected error occurred while checking setup.'}, status=500)

    if present:
        return Response({'needsIndex': False})
    return Response({
        'needsIndex': True,
        'indexName': MediaItem.ACTIVE_TYPE_INDEX,
        'fields': [
            {'fieldPath': 'deleted_at', 'order': 'ASCENDING'},
            {'fieldPath': 'type', 'order': 'ASCENDING'},
            {'fieldPath': 'uploaded_at', 'order': 'DESCENDING'},
        ],
        'fix': 'python manage.py migrate core',
    })
