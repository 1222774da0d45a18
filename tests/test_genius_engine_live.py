"""
Tests for the dispatcher's live transport and fallback chain.
"""

import asyncio
import json

import pytest

import genius_engine
from config import DispatcherConfig
from genius_engine import (
    Dispatcher,
    GeniusEngine,
    NetworkError,
    NonJsonResponse,
    Operation,
    RemoteError,
)
from tests.fakes import FakeSession


PRIMARY = 'http://primary.test/fns/generateSyllabus'
EMULATOR = 'http://127.0.0.1:5001/demo-project/us-central1/generateSyllabus'
HOSTING = 'http://host.test/api/generateSyllabus'

SYLLABUS = {'title': 'Optics Mastery', 'syllabus': ['Light', 'Lenses']}


def ok(result):
    return 200, json.dumps({'result': result})


@pytest.mark.asyncio
async def test_primary_success_unwraps_result(live_config, log_events):
    session = FakeSession({PRIMARY: ok(SYLLABUS)})
    dispatcher = Dispatcher(live_config, logger=log_events, session=session)

    result = await dispatcher.dispatch(Operation.GENERATE_SYLLABUS, {'topic': 'Optics'})

    assert result == SYLLABUS
    assert session.urls == [PRIMARY]
    call = session.calls[0]
    assert call['headers'] == {'Content-Type': 'application/json'}
    assert json.loads(call['data']) == {'topic': 'Optics'}
    kinds = [kind for kind, _, _ in log_events.events]
    assert kinds.index('request') < kinds.index('response')


@pytest.mark.asyncio
async def test_body_without_envelope_is_returned_whole(live_config):
    session = FakeSession({PRIMARY: (200, json.dumps(SYLLABUS))})
    result = await Dispatcher(live_config, session=session).dispatch(Operation.GENERATE_SYLLABUS, {})
    assert result == SYLLABUS


@pytest.mark.asyncio
async def test_missing_payload_is_sent_as_empty_object(live_config):
    session = FakeSession({PRIMARY: ok(SYLLABUS)})
    await Dispatcher(live_config, session=session).dispatch(Operation.GENERATE_SYLLABUS)
    assert session.calls[0]['data'] == '{}'


@pytest.mark.asyncio
async def test_unreachable_primary_uses_emulator_fallback(live_config, log_events):
    session = FakeSession({EMULATOR: ok(SYLLABUS)})
    dispatcher = Dispatcher(live_config, logger=log_events, session=session)

    result = await dispatcher.dispatch(Operation.GENERATE_SYLLABUS, {'topic': 'Optics'})

    assert result == SYLLABUS
    assert session.urls == [PRIMARY, EMULATOR]
    assert ('state', 'generateSyllabus: LIVE_FALLBACK_NETWORK', None) in log_events.events


@pytest.mark.asyncio
async def test_explicit_emulator_origin_wins_over_project(live_config):
    config = DispatcherConfig(
        base_url=live_config.base_url,
        hosting_origin=live_config.hosting_origin,
        emulator_origin='http://localhost:9999/emu',
        project='demo-project',
        use_mock=False,
    )
    session = FakeSession({'http://localhost:9999/emu/generateSyllabus': ok(SYLLABUS)})
    assert await Dispatcher(config, session=session).dispatch(Operation.GENERATE_SYLLABUS, {}) == SYLLABUS


@pytest.mark.asyncio
async def test_unreachable_primary_without_fallback_is_network_error(log_events):
    config = DispatcherConfig(base_url='http://primary.test/fns', hosting_origin='http://host.test', use_mock=False)
    session = FakeSession()
    dispatcher = Dispatcher(config, logger=log_events, session=session)

    with pytest.raises(NetworkError) as excinfo:
        await dispatcher.dispatch(Operation.GENERATE_SYLLABUS, {})

    assert session.urls == [PRIMARY]
    assert excinfo.value.__cause__ is not None
    assert any(kind == 'error' for kind, _, _ in log_events.events)


@pytest.mark.asyncio
async def test_unreachable_fallback_is_network_error(live_config):
    session = FakeSession()
    with pytest.raises(NetworkError):
        await Dispatcher(live_config, session=session).dispatch(Operation.GENERATE_SYLLABUS, {})
    assert session.urls == [PRIMARY, EMULATOR]


@pytest.mark.asyncio
async def test_404_tries_hosting_path_once(live_config):
    session = FakeSession({PRIMARY: (404, 'Not Found'), HOSTING: ok(SYLLABUS)})
    result = await Dispatcher(live_config, session=session).dispatch(Operation.GENERATE_SYLLABUS, {})
    assert result == SYLLABUS
    assert session.urls == [PRIMARY, HOSTING]


@pytest.mark.asyncio
async def test_404_everywhere_is_remote_error_404(live_config):
    session = FakeSession({PRIMARY: (404, 'Not Found'), HOSTING: (404, 'Not Found')})
    with pytest.raises(RemoteError) as excinfo:
        await Dispatcher(live_config, session=session).dispatch(Operation.GENERATE_SYLLABUS, {})

    assert excinfo.value.status == 404
    assert str(excinfo.value) == 'Function generateSyllabus failed with 404'
    assert excinfo.value.body == {'raw': 'Not Found'}


@pytest.mark.asyncio
async def test_hosting_fallback_failure_is_logged_not_raised(live_config, log_events):
    session = FakeSession({PRIMARY: (404, json.dumps({'error': {'message': 'no such function'}}))})
    dispatcher = Dispatcher(live_config, logger=log_events, session=session)

    with pytest.raises(RemoteError) as excinfo:
        await dispatcher.dispatch(Operation.GENERATE_SYLLABUS, {})

    assert excinfo.value.message == 'no such function'
    assert session.urls == [PRIMARY, HOSTING]
    assert any(kind == 'info' and 'also failed' in message for kind, message, _ in log_events.events)


@pytest.mark.asyncio
async def test_network_fallback_then_404_fallback(live_config):
    # Up to three attempts: primary, emulator, hosting
    session = FakeSession({EMULATOR: (404, ''), HOSTING: ok(SYLLABUS)})
    result = await Dispatcher(live_config, session=session).dispatch(Operation.GENERATE_SYLLABUS, {})
    assert result == SYLLABUS
    assert session.urls == [PRIMARY, EMULATOR, HOSTING]


@pytest.mark.asyncio
async def test_hosting_fallback_never_repeats_the_primary_url():
    config = DispatcherConfig(base_url='/api', hosting_origin='http://host.test', use_mock=False)
    session = FakeSession({HOSTING: (404, '')})

    with pytest.raises(RemoteError) as excinfo:
        await Dispatcher(config, session=session).dispatch(Operation.GENERATE_SYLLABUS, {})

    assert excinfo.value.status == 404
    assert session.urls == [HOSTING]


@pytest.mark.asyncio
async def test_server_error_uses_envelope_message(live_config, log_events):
    body = {'error': {'message': '`topic` is required.', 'stack': 'Traceback...'}}
    session = FakeSession({PRIMARY: (500, json.dumps(body))})
    dispatcher = Dispatcher(live_config, logger=log_events, session=session)

    with pytest.raises(RemoteError) as excinfo:
        await dispatcher.dispatch(Operation.GENERATE_SYLLABUS, {})

    assert excinfo.value.status == 500
    assert excinfo.value.message == '`topic` is required.'
    assert session.urls == [PRIMARY]
    errors = [data for kind, _, data in log_events.events if kind == 'error']
    assert errors[-1]['status'] == 500


@pytest.mark.asyncio
async def test_non_json_body_is_returned_raw(live_config):
    session = FakeSession({PRIMARY: (200, 'plain text title')})
    result = await Dispatcher(live_config, session=session).dispatch(Operation.GENERATE_SYLLABUS, {})
    assert isinstance(result, NonJsonResponse)
    assert result.raw == 'plain text title'


@pytest.mark.asyncio
async def test_empty_body_is_none(live_config):
    session = FakeSession({PRIMARY: (200, '')})
    assert await Dispatcher(live_config, session=session).dispatch(Operation.GENERATE_SYLLABUS, {}) is None


@pytest.mark.asyncio
async def test_identical_calls_are_not_deduplicated(live_config):
    session = FakeSession({PRIMARY: ok(SYLLABUS)})
    dispatcher = Dispatcher(live_config, session=session)
    await asyncio.gather(
        dispatcher.dispatch(Operation.GENERATE_SYLLABUS, {'topic': 'Optics'}),
        dispatcher.dispatch(Operation.GENERATE_SYLLABUS, {'topic': 'Optics'}),
    )
    assert session.urls == [PRIMARY, PRIMARY]


@pytest.mark.asyncio
async def test_title_failure_degrades_to_placeholder(live_config, log_events):
    dispatcher = Dispatcher(live_config, logger=log_events, session=FakeSession())
    engine = GeniusEngine(dispatcher)
    assert await engine.resolve_web_page_title('https://example.com') == 'External Resource'
    assert any('Title resolution error' in message for _, message, _ in log_events.events)


@pytest.mark.asyncio
async def test_other_operations_propagate_failures(live_config):
    engine = GeniusEngine(Dispatcher(live_config, session=FakeSession()))
    with pytest.raises(NetworkError):
        await engine.generate_syllabus('Optics', 'Beginner')


@pytest.mark.asyncio
async def test_title_result_unwrapped_from_string(live_config):
    url = 'http://primary.test/fns/resolveWebPageTitle'
    engine = GeniusEngine(Dispatcher(live_config, session=FakeSession({url: ok('Example Domain')})))
    assert await engine.resolve_web_page_title('https://example.com') == 'Example Domain'


@pytest.mark.asyncio
async def test_module_level_helpers_use_shared_dispatcher(monkeypatch, mock_config):
    monkeypatch.setattr(genius_engine, '_default_dispatcher', Dispatcher(mock_config))
    genius_engine.set_logger(None)
    result = await genius_engine.dispatch('resolveWebPageTitle', {'url': 'https://example.com/a'})
    assert 'example.com' in result
    assert genius_engine.get_dispatcher() is genius_engine._default_dispatcher
