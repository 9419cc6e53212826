import enum
import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from django.conf import settings

logger = logging.getLogger(__name__)

STATUS_FIELD = 'isSetupComplete'


class GateQueryError(Exception):
    """The setup status endpoint could not be queried or answered nonsense."""


class PathCategory(enum.Enum):
    INTERNAL = 'internal'
    STATUS_ENDPOINT = 'status-endpoint'
    WIZARD = 'wizard'
    SITE = 'site'


@dataclass(frozen=True)
class Decision:
    redirect_to: Optional[str] = None

    @property
    def passes(self) -> bool:
        return self.redirect_to is None


PASS_THROUGH = Decision()


@dataclass(frozen=True)
class GateConfig:
    wizard_path: str = '/setup'
    root_path: str = '/'
    status_path: str = '/api/setup-check'
    status_url: str = 'http://127.0.0.1:8000/api/setup-check'
    bypass_prefixes: tuple = ('/static/', '/media/', '/api/auth')
    status_endpoints: tuple = ('/api/setup-check', '/api/admin/check-index')
    static_extensions: tuple = ('svg', 'png', 'jpg', 'jpeg', 'gif', 'ico', 'css', 'js')
    timeout: Optional[float] = 5.0

    @classmethod
    def from_settings(cls) -> 'GateConfig':
        return cls(
            wizard_path=settings.SETUP_WIZARD_PATH,
            root_path=settings.SETUP_ROOT_PATH,
            status_path=settings.SETUP_STATUS_PATH,
            status_url=settings.SETUP_STATUS_URL,
            bypass_prefixes=tuple(settings.SETUP_GATE_BYPASS_PREFIXES),
            status_endpoints=tuple(settings.SETUP_GATE_STATUS_ENDPOINTS),
            static_extensions=tuple(ext.lower().lstrip('.') for ext in settings.SETUP_GATE_STATIC_EXTENSIONS),
            timeout=settings.SETUP_STATUS_TIMEOUT,
        )


class SetupStatusClient:
    def __init__(self, timeout: Optional[float] = 5.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        self.transport = transport

    async def fetch(self, url: str) -> bool:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(url, headers={'Cache-Control': 'no-store'})
        except httpx.HTTPError as exc:
            raise GateQueryError(f'request to {url} failed: {exc!r}') from exc

        if not response.is_success:
            raise GateQueryError(f'{url} answered with status {response.status_code}')
        try:
            payload = response.json()
        except ValueError as exc:
            raise GateQueryError(f'{url} returned a non-JSON body') from exc

        value = payload.get(STATUS_FIELD) if isinstance(payload, dict) else None
        if not isinstance(value, bool):
            raise GateQueryError(f"'{STATUS_FIELD}' missing from {url} response")
        return value

    async def is_setup_complete(self, url: str) -> bool:
        try:
            return await self.fetch(url)
        except GateQueryError as exc:
            logger.warning('Setup check failed, treating setup as complete: %s', exc)
            return True


class RequestGate:
    def __init__(self, config: GateConfig, status_client: SetupStatusClient):
        self.config = config
        self.status_client = status_client
        self._static_suffixes = tuple(f'.{ext}' for ext in config.static_extensions)
        # First match wins.
        self.routes = [
            (PathCategory.INTERNAL, self._is_internal, self._pass_through),
            (PathCategory.STATUS_ENDPOINT, self._is_status_endpoint, self._pass_through),
            (PathCategory.WIZARD, self._is_wizard, self._guard_wizard),
            (PathCategory.SITE, self._always, self._guard_site),
        ]

    @classmethod
    def from_settings(cls) -> 'RequestGate':
        config = GateConfig.from_settings()
        return cls(config, SetupStatusClient(timeout=config.timeout))

    @property
    def status_url(self) -> str:
        return self.config.status_url

    def _is_internal(self, path: str) -> bool:
        if any(_under_prefix(path, prefix) for prefix in self.config.bypass_prefixes):
            return True
        filename = path.rsplit('/', 1)[-1].lower()
        return filename.endswith(self._static_suffixes)

    def _is_status_endpoint(self, path: str) -> bool:
        return path in self.config.status_endpoints

    def _is_wizard(self, path: str) -> bool:
        return path == self.config.wizard_path

    @staticmethod
    def _always(path: str) -> bool:
        return True

    async def _pass_through(self) -> Decision:
        return PASS_THROUGH

    async def _guard_wizard(self) -> Decision:
        if await self.status_client.is_setup_complete(self.status_url):
            return Decision(redirect_to=self.config.root_path)
        return PASS_THROUGH

    async def _guard_site(self) -> Decision:
        if not await self.status_client.is_setup_complete(self.status_url):
            return Decision(redirect_to=self.config.wizard_path)
        return PASS_THROUGH

    def _match(self, path: str):
        for category, predicate, action in self.routes:
            if predicate(path):
                return category, action
        raise AssertionError(f'no route matched {path!r}')

    def classify(self, path: str) -> PathCategory:
        category, _ = self._match(path)
        return category

    async def evaluate(self, path: str) -> Decision:
        category, action = self._match(path)
        decision = await action()
        if not decision.passes:
            logger.debug('%s path %s redirected to %s', category.value, path, decision.redirect_to)
        return decision


def _under_prefix(path: str, prefix: str) -> bool:
    # '/static/' matches anything below it, '/api/auth' only itself or '/api/auth/...'.
    if prefix.endswith('/'):
        return path.startswith(prefix)
    return path == prefix or path.startswith(f'{prefix}/')
