"""
Client for the learning functions.

Resolves where the functions live from configuration, POSTs JSON payloads to
them and walks a short fallback chain when the primary URL is unreachable or
answers 404. In mock mode no request is made; in-process handlers return
synthetic, correctly shaped data instead.

Usage:
    engine = GeniusEngine()
    syllabus = await engine.generate_syllabus('Photosynthesis', 'Beginner')
"""

import asyncio
import json
import logging
import sys
import threading
import uuid
from enum import Enum
from typing import Any, Callable, Dict, NamedTuple, Optional
from urllib.parse import urlparse

import requests

from config import DispatcherConfig, get_default_config
from http_session import create_requests_session

logger = logging.getLogger(__name__)


def _ensure_console_handler():
    # Without any handler in the hierarchy, INFO events would be dropped.
    if not logger.hasHandlers():
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)


DEFAULT_TITLE = 'External Resource'


class Operation(str, Enum):
    RESOLVE_WEB_PAGE_TITLE = 'resolveWebPageTitle'
    GENERATE_SYLLABUS = 'generateSyllabus'
    PERFORM_INITIAL_SCOPING = 'performInitialScoping'
    GENERATE_SPRINT_CONTENT = 'generateSprintContent'


class LogKind(str, Enum):
    INFO = 'info'
    REQUEST = 'request'
    RESPONSE = 'response'
    ERROR = 'error'
    STATE = 'state'


LogCallback = Callable[[str, str, Optional[Any]], None]


# --- ERRORS ---

class DispatchError(Exception):
    """Base class for failures raised by the dispatcher."""


class UnsupportedOperation(DispatchError):
    """The operation is unknown, or has no mock handler in mock mode."""


class NetworkError(DispatchError):
    """Transport failure with no fallback left to try."""


class RemoteError(DispatchError):
    """The function host answered with a non-success status."""

    def __init__(self, status, message, body=None):
        super().__init__(message)
        self.status = status
        self.message = message
        self.body = body


class NonJsonResponse(dict):
    """A response body that was not valid JSON, kept as ``{"raw": text}``."""

    def __init__(self, text):
        super().__init__(raw=text)

    @property
    def raw(self):
        return self['raw']


def parse_body(text):
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return NonJsonResponse(text)


def extract_result(body):
    """Unwrap ``{"result": ...}``; bodies without an envelope are returned as-is."""
    if isinstance(body, dict) and body.get('result') is not None:
        return body['result']
    return body


def error_message(operation, status, body):
    if isinstance(body, dict) and isinstance(body.get('error'), dict):
        message = body['error'].get('message')
        if message:
            return message
    return f"Function {operation.value} failed with {status}"


# --- MOCK HANDLERS ---

async def _mock_resolve_web_page_title(payload, delay_scale=1.0):
    await asyncio.sleep(0.12 * delay_scale)
    url = (payload or {}).get('url')
    if not url or not isinstance(url, str):
        return DEFAULT_TITLE
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return DEFAULT_TITLE
    if not hostname:
        return DEFAULT_TITLE
    if hostname.startswith('www.'):
        hostname = hostname[4:]
    return f"{hostname} - Example Title"


async def _mock_generate_syllabus(payload, delay_scale=1.0):
    await asyncio.sleep(0.3 * delay_scale)
    topic = (payload or {}).get('topic') or 'Topic'
    return {
        'title': f"{topic} Mastery",
        'syllabus': [
            'Foundations & Core Principles',
            'Mechanisms & Deep Dive I',
            'Mechanisms & Deep Dive II',
            'Applications & Synthesis I',
            'Applications & Synthesis II',
            'Advanced Topics & Edge Cases',
            'Mastery & Integration',
        ],
    }


async def _mock_perform_initial_scoping(payload, delay_scale=1.0):
    await asyncio.sleep(0.22 * delay_scale)
    topic = (payload or {}).get('topic') or 'Topic'
    return {
        'complexity': 'Intermediate',
        'thresholdConcepts': [f"Concept {letter}" for letter in 'ABCDEFGH'],
        'goals': [
            {'id': f"g{i}", 'text': f"Goal {i} for {topic}", 'isSelected': True, 'priority': 'Useful'}
            for i in range(1, 6)
        ],
    }


async def _mock_generate_sprint_content(payload, delay_scale=1.0):
    await asyncio.sleep(0.3 * delay_scale)
    payload = payload or {}
    topic = payload.get('topic') or 'Topic'
    scoping = payload.get('scopingData') or {}
    concepts = scoping.get('thresholdConcepts') if isinstance(scoping, dict) else None
    return {
        'id': f"mock-{uuid.uuid4().hex}",
        'title': f"{topic}: Quick Unit",
        'duration': 10,
        'complexity': 'Intermediate',
        'motivatingStatement': f"This short unit makes {topic} relevant and actionable.",
        'smartGoals': ['Understand core concept', 'Apply in a simple example'],
        'thresholdConcepts': list(concepts) if concepts else ['Concept A', 'Concept B'],
        'sections': [
            {'title': 'Overview', 'content': 'Quick overview content.', 'imageKeyword': topic, 'interactionType': 'READ'},
            {'title': 'Practice', 'content': 'Short practice activity.', 'imageKeyword': topic, 'interactionType': 'REFLECTION'},
        ],
        'wordPairs': [{'a': f"Term{i}", 'b': f"Def{i}"} for i in range(1, 9)],
        'quiz': [
            {'id': 'q1', 'question': 'Sample question?', 'options': ['A', 'B', 'C'], 'correctIndex': 0, 'explanation': 'Because...'},
            {'id': 'q2', 'question': 'Another?', 'options': ['A', 'B'], 'correctIndex': 1, 'explanation': 'Because...'},
        ],
    }


MOCK_HANDLERS = {
    Operation.RESOLVE_WEB_PAGE_TITLE: _mock_resolve_web_page_title,
    Operation.GENERATE_SYLLABUS: _mock_generate_syllabus,
    Operation.PERFORM_INITIAL_SCOPING: _mock_perform_initial_scoping,
    Operation.GENERATE_SPRINT_CONTENT: _mock_generate_sprint_content,
}


# --- FALLBACK CHAIN ---

class Reply(NamedTuple):
    url: str
    status: int
    body: Any

    @property
    def ok(self):
        return 200 <= self.status < 300


class ChainState:
    """What the chain has seen so far within one dispatch."""

    def __init__(self):
        self.reply: Optional[Reply] = None
        self.transport_error: Optional[Exception] = None
        self.failed_url: Optional[str] = None
        self.attempted = []


def _absolute(config, base):
    # Relative bases are served by the local function host
    if base.startswith('/'):
        return f"{config.hosting_origin}{base}"
    return base


def _primary_url(config, operation):
    return f"{_absolute(config, config.base_url.rstrip('/'))}/{operation.value}"


def _network_fallback_url(config, operation):
    base = config.fallback_base
    return f"{base}/{operation.value}" if base else None


def _hosting_fallback_url(config, operation):
    return f"{config.hosting_origin}/api/{operation.value}"


class Candidate(NamedTuple):
    name: str
    applies: Callable[[ChainState], bool]
    build_url: Callable[[DispatcherConfig, Operation], Optional[str]]
    state: str
    # A speculative candidate only ever contributes a success; its failures are discarded.
    speculative: bool


FALLBACK_CHAIN = (
    Candidate('primary', lambda s: not s.attempted, _primary_url, 'LIVE_PRIMARY', False),
    Candidate('network', lambda s: s.transport_error is not None, _network_fallback_url, 'LIVE_FALLBACK_NETWORK', False),
    Candidate('hosting', lambda s: s.reply is not None and s.reply.status == 404, _hosting_fallback_url, 'LIVE_FALLBACK_404', True),
)


class Dispatcher:
    """Sends operations to the function host, or to the mock handlers."""

    def __init__(self, config: Optional[DispatcherConfig] = None, logger: Optional[LogCallback] = None,
                 session: Optional[requests.Session] = None, mock_handlers: Optional[Dict] = None):
        self.config = config or get_default_config()
        self._logger = logger
        self._session = session
        self.mock_handlers = MOCK_HANDLERS if mock_handlers is None else mock_handlers

    def set_logger(self, callback: Optional[LogCallback]):
        self._logger = callback

    def log(self, kind: LogKind, message: str, data: Any = None):
        if self._logger is not None:
            try:
                self._logger(kind.value, message, data)
            except Exception:
                pass
            return
        _ensure_console_handler()
        if kind is LogKind.ERROR:
            logger.error('[GENIUS] %s %s', message, '' if data is None else data)
        else:
            logger.info('[GENIUS] %s %s', message, '' if data is None else data)

    def _get_session(self):
        if self._session is None:
            self._session = create_requests_session()
        return self._session

    async def dispatch(self, operation, payload=None):
        """Run ``operation`` with ``payload`` and return its result."""
        try:
            op = Operation(operation)
        except ValueError:
            self.log(LogKind.ERROR, f"Unsupported operation {operation}")
            raise UnsupportedOperation(f"Unsupported operation {operation}") from None

        if self.config.use_mock:
            return await self._dispatch_mock(op, payload)
        return await self._dispatch_live(op, payload)

    async def _dispatch_mock(self, op, payload):
        self.log(LogKind.STATE, f"{op.value}: MOCK")
        self.log(LogKind.INFO, f"Mocking function {op.value}", payload)
        handler = self.mock_handlers.get(op)
        if handler is None:
            message = f"No mock handler for function {op.value}"
            self.log(LogKind.ERROR, message)
            raise UnsupportedOperation(message)
        return await handler(payload, self.config.mock_delay_scale)

    def _send(self, session, url, payload):
        response = session.post(
            url,
            data=json.dumps(payload or {}),
            headers={'Content-Type': 'application/json'},
            timeout=self.config.timeout_seconds,
        )
        return Reply(url, response.status_code, parse_body(response.text))

    async def _post(self, url, payload):
        session = self._get_session()
        return await asyncio.to_thread(self._send, session, url, payload)

    async def _dispatch_live(self, op, payload):
        state = ChainState()
        for candidate in FALLBACK_CHAIN:
            if not candidate.applies(state):
                continue
            url = candidate.build_url(self.config, op)
            if url is None:
                continue
            if url in state.attempted:
                self.log(LogKind.INFO, f"Skipping {candidate.name} fallback for {op.value}: {url} was already tried")
                continue
            if candidate.name == 'hosting':
                self.log(LogKind.INFO, f"Received 404 from {state.reply.url} for {op.value}. "
                                       f"Trying hosting-style /api/{op.value} fallback.")

            state.attempted.append(url)
            self.log(LogKind.STATE, f"{op.value}: {candidate.state}")
            self.log(LogKind.REQUEST, f"POST {url}" if candidate.name == 'primary' else f"POST fallback {url}", payload)
            try:
                reply = await self._post(url, payload)
            except requests.RequestException as err:
                if candidate.speculative:
                    self.log(LogKind.INFO, f"Fallback {url} also failed: {err}")
                    continue
                self.log(LogKind.INFO, f"Function URL {url} failed: {err}")
                state.reply, state.transport_error, state.failed_url = None, err, url
                continue

            if candidate.speculative:
                if reply.ok:
                    result = extract_result(reply.body)
                    self.log(LogKind.RESPONSE, f"Response from fallback /api/{op.value}", result)
                    return result
                self.log(LogKind.INFO, f"Fallback {url} also failed with {reply.status}")
                continue
            state.reply, state.transport_error = reply, None

        if state.reply is None:
            err = state.transport_error
            message = f"Request to {state.failed_url} for {op.value} failed: {err}"
            self.log(LogKind.ERROR, message, {'operation': op.value, 'error': repr(err)})
            raise NetworkError(message) from err

        return self._finish(op, state.reply)

    def _finish(self, op, reply):
        if not reply.ok:
            message = error_message(op, reply.status, reply.body)
            self.log(LogKind.ERROR, message, {'operation': op.value, 'status': reply.status, 'body': reply.body})
            raise RemoteError(reply.status, message, reply.body)
        result = extract_result(reply.body)
        self.log(LogKind.RESPONSE, f"Response from {op.value}", result)
        return result


class GeniusEngine:
    """The four learning calls, as the presentation layer uses them."""

    def __init__(self, dispatcher: Optional[Dispatcher] = None):
        self.dispatcher = dispatcher or get_dispatcher()

    def set_logger(self, callback: Optional[LogCallback]):
        self.dispatcher.set_logger(callback)

    async def resolve_web_page_title(self, url: str) -> str:
        # Titles are cosmetic, so any failure degrades to the placeholder
        try:
            result = await self.dispatcher.dispatch(Operation.RESOLVE_WEB_PAGE_TITLE, {'url': url})
        except Exception as e:
            self.dispatcher.log(LogKind.ERROR, f"Title resolution error: {e}", e)
            return DEFAULT_TITLE
        if isinstance(result, str):
            return result
        if isinstance(result, dict):
            return result.get('result') or ''
        return ''

    async def generate_syllabus(self, topic: str, complexity: str) -> Dict[str, Any]:
        return await self.dispatcher.dispatch(
            Operation.GENERATE_SYLLABUS, {'topic': topic, 'complexity': complexity})

    async def perform_initial_scoping(self, topic: str, prefs: Dict[str, Any], session_index: int,
                                      total_sessions: int, program_topic: str) -> Dict[str, Any]:
        payload = {
            'topic': topic,
            'prefs': prefs,
            'sessionIndex': session_index,
            'totalSessions': total_sessions,
            'programTopic': program_topic,
        }
        return await self.dispatcher.dispatch(Operation.PERFORM_INITIAL_SCOPING, payload)

    async def generate_sprint_content(self, topic: str, priming: Dict[str, Any], scoping_data: Dict[str, Any],
                                      prefs: Dict[str, Any]) -> Dict[str, Any]:
        payload = {'topic': topic, 'priming': priming, 'scopingData': scoping_data, 'prefs': prefs}
        return await self.dispatcher.dispatch(Operation.GENERATE_SPRINT_CONTENT, payload)


# --- PROCESS-WIDE DEFAULTS ---

_default_dispatcher = None
_default_dispatcher_lock = threading.Lock()


def get_dispatcher() -> Dispatcher:
    """Return the shared dispatcher, built from the environment on first use."""
    global _default_dispatcher
    if _default_dispatcher is None:
        with _default_dispatcher_lock:
            if _default_dispatcher is None:
                _default_dispatcher = Dispatcher()
    return _default_dispatcher


def set_logger(callback: Optional[LogCallback]):
    get_dispatcher().set_logger(callback)


async def dispatch(operation, payload=None):
    return await get_dispatcher().dispatch(operation, payload)
