import logging

from django.db import DatabaseError

from .models import SITE_STATUS_KEY, Setting

logger = logging.getLogger(__name__)

STATUS_FIELD = 'isSetupComplete'


class StatusReadError(Exception):
    """The store holding the setup flag could not be read."""


class DatabaseStatusStore:
    def read(self) -> bool:
        try:
            setting = Setting.objects.filter(key=SITE_STATUS_KEY).first()
        except DatabaseError as exc:
            raise StatusReadError(f'Unable to read {SITE_STATUS_KEY}: {exc}') from exc
        if setting is None:
            return False
        if not isinstance(setting.value, dict):
            raise StatusReadError(f'{SITE_STATUS_KEY} holds {type(setting.value).__name__}, expected an object')
        return setting.value.get(STATUS_FIELD) is True


def get_setup_status(store=None) -> dict[str, bool]:
    store = store or DatabaseStatusStore()
    try:
        is_complete = store.read()
    except StatusReadError as exc:
        logger.error('Error checking setup status, reporting setup as incomplete: %s', exc)
        is_complete = False
    return {STATUS_FIELD: is_complete}


def set_setup_complete(complete: bool = True) -> Setting:
    setting, _ = Setting.objects.get_or_create(key=SITE_STATUS_KEY)
    value = setting.value if isinstance(setting.value, dict) else {}
    value[STATUS_FIELD] = complete
    setting.value = value
    setting.save(update_fields=['value', 'updated_at'])
    logger.info('Setup status set to %s', 'complete' if complete else 'incomplete')
    return setting
