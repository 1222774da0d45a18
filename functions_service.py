# functions_service.py

import traceback
import uuid
from functools import wraps

from flask import Blueprint, request, jsonify, current_app

import gemini_client
from gemini_client import GeminiError
from prompts import (
    SCOPING_SCHEMA,
    SPRINT_SCHEMA,
    SYLLABUS_SCHEMA,
    scoping_prompt,
    sprint_prompt,
    syllabus_prompt,
    title_prompt,
)

# Create a Blueprint for the learning functions; the URL path is the operation name
functions_bp = Blueprint('functions', __name__, url_prefix='/api')

ALL_METHODS = ['GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS']

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'Content-Type, Authorization',
    'Access-Control-Allow-Methods': 'POST, OPTIONS',
}

DEFAULT_TITLE = 'External Resource'


def _with_cors(response):
    for name, value in CORS_HEADERS.items():
        response.headers[name] = value
    return response


def with_http(handler):
    """Expose ``handler(payload) -> result`` as a POST-only JSON function.

    Results are wrapped as ``{"result": ...}``; any exception becomes a 500
    ``{"error": {"message", "stack"}}`` envelope.
    """
    @wraps(handler)
    def decorated():
        if request.method == 'OPTIONS':
            return _with_cors(current_app.response_class('', status=204))

        if request.method != 'POST':
            return _with_cors(jsonify({'error': {'message': 'Method not allowed. Use POST.'}})), 405

        try:
            payload = request.get_json(silent=True) or {}
            result = handler(payload)
            return _with_cors(jsonify({'result': result})), 200
        except Exception as error:
            message = str(error) or 'Unexpected error'
            stack = traceback.format_exc() or 'No stack trace available'
            current_app.logger.error('Caught an exception in %s: %s\n%s', handler.__name__, message, stack)
            return _with_cors(jsonify({'error': {'message': message, 'stack': stack}})), 500
    return decorated


def _generation_failed(what, error, **context):
    current_app.logger.error(f"{what} failed: {error} {context}")
    return RuntimeError(str(error) or f"{what} failed.")


def _require(payload, field):
    value = payload.get(field) if isinstance(payload, dict) else None
    if not value:
        raise ValueError(f"`{field}` is required.")
    return value


# --- LEARNING FUNCTIONS ---

@functions_bp.route('/resolveWebPageTitle', methods=ALL_METHODS)
@with_http
def resolve_web_page_title(payload):
    """Ask the model (with search grounding) for a page's human-readable title."""
    url = _require(payload, 'url')
    client = gemini_client.get_client()
    try:
        text = client.generate(title_prompt(url), response_mime_type='text/plain', use_search=True)
    except GeminiError as e:
        raise _generation_failed('Title resolution', e, url=url) from e

    title = (text or '').strip() or DEFAULT_TITLE
    if title.startswith('"'):
        title = title[1:]
    if title.endswith('"'):
        title = title[:-1]
    # The model sometimes echoes the URL back
    if 'http' in title or not title:
        title = DEFAULT_TITLE
    return title


@functions_bp.route('/generateSyllabus', methods=ALL_METHODS)
@with_http
def generate_syllabus(payload):
    topic = _require(payload, 'topic')
    complexity = payload.get('complexity')
    client = gemini_client.get_client()
    try:
        data = client.generate_json(syllabus_prompt(topic, complexity), response_schema=SYLLABUS_SCHEMA, use_search=True)
    except GeminiError as e:
        raise _generation_failed('Syllabus generation', e, topic=topic) from e

    syllabus = data.get('syllabus') if isinstance(data, dict) else None
    return {
        'title': (data.get('title') if isinstance(data, dict) else None) or topic,
        'syllabus': syllabus[:7] if isinstance(syllabus, list) else [],
    }


@functions_bp.route('/performInitialScoping', methods=ALL_METHODS)
@with_http
def perform_initial_scoping(payload):
    topic = _require(payload, 'topic')
    prompt = scoping_prompt(
        topic,
        payload.get('prefs'),
        payload.get('sessionIndex'),
        payload.get('totalSessions'),
        payload.get('programTopic'),
    )
    client = gemini_client.get_client()
    try:
        data = client.generate_json(prompt, response_schema=SCOPING_SCHEMA)
    except GeminiError as e:
        raise _generation_failed('Initial scoping', e, topic=topic) from e
    if not isinstance(data, dict):
        data = {}

    goals = data.get('goals')
    scoped_goals = [
        {'id': str(uuid.uuid4()), 'text': text, 'isSelected': True, 'priority': 'Useful'}
        for text in goals
    ] if isinstance(goals, list) else []
    concepts = data.get('thresholdConcepts')

    return {
        'complexity': data.get('complexity') or 'Intermediate',
        'thresholdConcepts': concepts if isinstance(concepts, list) else [],
        'goals': scoped_goals,
    }


@functions_bp.route('/generateSprintContent', methods=ALL_METHODS)
@with_http
def generate_sprint_content(payload):
    topic = _require(payload, 'topic')
    prompt = sprint_prompt(topic, payload.get('priming'), payload.get('scopingData'), payload.get('prefs'))
    client = gemini_client.get_client()
    try:
        data = client.generate_json(prompt, response_schema=SPRINT_SCHEMA)
    except GeminiError as e:
        raise _generation_failed('Sprint generation', e, topic=topic) from e
    if not isinstance(data, dict):
        data = {}

    unit = dict(data)
    unit['id'] = data.get('id') or str(uuid.uuid4())
    unit['duration'] = data.get('duration') or 10
    return unit


@functions_bp.route('/status', methods=['GET'])
def status():
    """Return active configuration (safe, non-secret) for UI debugging."""
    cfg = current_app.config
    return jsonify({
        'model': cfg.get('GEMINI_MODEL'),
        'region': cfg.get('FUNCTIONS_REGION'),
        'has_gemini_key': bool(cfg.get('GEMINI_API_KEY')),
    }), 200
