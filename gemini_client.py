# gemini_client.py

import json
import logging
import os

import requests
from flask import current_app, has_app_context

from config import Config
from http_session import create_requests_session


class GeminiError(Exception):
    """Raised when the Gemini API call fails or returns unusable output."""


class GeminiConfigError(GeminiError):
    """Raised when no API key is configured."""


MISSING_KEY_MESSAGE = (
    'GEMINI_API_KEY is missing. For local development, create a `.env` file next to app.py '
    'and add the line `GEMINI_API_KEY="YOUR_KEY"`. For deployed functions, set GEMINI_API_KEY '
    'in the function runtime environment.'
)


def _config_value(name, default=None):
    if has_app_context():
        value = current_app.config.get(name)
        if value is not None:
            return value
    return getattr(Config, name, default)


def _logger():
    if has_app_context():
        return current_app.logger
    return logging.getLogger(__name__)


def get_api_key():
    """Return the Gemini API key from app config, falling back to the environment."""
    from_config = _config_value('GEMINI_API_KEY')
    if from_config:
        return from_config
    from_env = os.environ.get('GEMINI_API_KEY')
    if from_env:
        _logger().info('Found GEMINI_API_KEY in environment variables.')
        return from_env
    raise GeminiConfigError(MISSING_KEY_MESSAGE)


def strip_code_fences(text):
    """Remove a surrounding ```json ... ``` block some models add around JSON."""
    txt = (text or '').strip()
    if txt.startswith('```'):
        nl = txt.find('\n')
        txt = txt[nl + 1:] if nl != -1 else txt[3:]
        if txt.rstrip().endswith('```'):
            txt = txt.rstrip()[:-3]
    return txt.strip()


class GeminiClient:
    """Thin wrapper over the Generative Language ``generateContent`` REST call."""

    def __init__(self, api_key, api_base=None, model=None, timeout=None, session=None):
        if not api_key:
            raise GeminiConfigError(MISSING_KEY_MESSAGE)
        self.api_key = api_key
        self.api_base = (api_base or _config_value('GEMINI_API_BASE')).rstrip('/')
        self.model = model or _config_value('GEMINI_MODEL')
        self.timeout = timeout or _config_value('GEMINI_TIMEOUT_SECONDS', 60)
        self.session = session or create_requests_session()

    def _build_payload(self, prompt, response_mime_type, response_schema, use_search):
        generation_config = {'responseMimeType': response_mime_type}
        if response_schema:
            generation_config['responseSchema'] = response_schema
        payload = {
            'contents': [{'role': 'user', 'parts': [{'text': prompt}]}],
            'generationConfig': generation_config,
        }
        if use_search:
            payload['tools'] = [{'googleSearch': {}}]
        return payload

    def generate(self, prompt, model=None, response_mime_type='text/plain',
                 response_schema=None, use_search=False):
        """Run one generation and return the text of the first candidate."""
        model_name = model or self.model
        url = f"{self.api_base}/models/{model_name}:generateContent"
        payload = self._build_payload(prompt, response_mime_type, response_schema, use_search)
        try:
            response = self.session.post(
                url,
                headers={'x-goog-api-key': self.api_key, 'Content-Type': 'application/json'},
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.Timeout as e:
            raise GeminiError(f"Gemini API timeout after {self.timeout}s: {e}") from e
        except requests.exceptions.ConnectionError as e:
            raise GeminiError(f"Cannot connect to Gemini API: {e}") from e
        except requests.exceptions.HTTPError as e:
            raise GeminiError(f"Gemini API error ({e.response.status_code}): {_upstream_message(e.response)}") from e
        except requests.exceptions.RequestException as e:
            raise GeminiError(f"Gemini API request failed: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise GeminiError('Gemini API returned a non-JSON body') from e
        return _candidate_text(body)

    def generate_json(self, prompt, response_schema=None, model=None, use_search=False):
        """Run a JSON-mode generation and parse it; an empty response parses to {}."""
        text = self.generate(
            prompt,
            model=model,
            response_mime_type='application/json',
            response_schema=response_schema,
            use_search=use_search,
        )
        txt = strip_code_fences(text)
        if not txt:
            return {}
        try:
            return json.loads(txt)
        except ValueError:
            # Some grounded responses wrap the object in prose
            start, end = txt.find('{'), txt.rfind('}')
            if start != -1 and end > start:
                try:
                    return json.loads(txt[start:end + 1])
                except ValueError:
                    pass
            raise GeminiError(f"Could not parse JSON from Gemini response: {txt[:200]}")


def _upstream_message(response):
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict) and isinstance(body.get('error'), dict):
        return body['error'].get('message') or response.text
    return response.text


def _candidate_text(body):
    if not isinstance(body, dict):
        return ''
    candidates = body.get('candidates') or []
    if not candidates:
        return ''
    parts = (candidates[0].get('content') or {}).get('parts') or []
    return ''.join(part.get('text', '') for part in parts if isinstance(part, dict))


_cached_key = None
_cached_client = None


def get_client():
    """Return a shared GeminiClient, rebuilt whenever the configured key changes."""
    global _cached_key, _cached_client
    key = get_api_key()
    if _cached_client is None or _cached_key != key:
        _cached_client = GeminiClient(key)
        _cached_key = key
        _logger().info('Initialized Gemini client with new API key.')
    return _cached_client


def reset_client():
    """Drop the cached client (used by tests and after key rotation)."""
    global _cached_key, _cached_client
    _cached_key = None
    _cached_client = None
