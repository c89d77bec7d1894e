from __future__ import annotations
from typing import Any, Dict
import json
import logging
from pathlib import Path

from flask import Flask, Response, jsonify, request
from almanac.api.orchestrator import REGISTRY, _CONFIG, list_runs, start_run
try:
    from flask_sock import Sock
except ImportError:  # pragma: no cover
    Sock = None  # Optional dependency for WS

logger = logging.getLogger(__name__)

app = Flask(__name__)
sock = Sock(app) if Sock is not None else None

OPENAPI_PATH = Path(__file__).with_name("openapi.json")
ARTIFACT_TYPES = {".csv": "text/csv", ".md": "text/markdown"}


def _error(message: str, status: int):
    return jsonify({'error': message}), status


@app.before_request
def _require_api_key():
    # app.config['API_KEY'] (tests) wins over the API_KEY environment variable
    expected = app.config['API_KEY'] if 'API_KEY' in app.config else _CONFIG.api_key
    if expected and request.path.startswith('/searches') and request.headers.get('X-API-Key') != expected:
        return _error('unauthorized', 401)
    return None


def search_options(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Validate a POST /searches body into start_run() keyword arguments."""
    text = payload.get('almanac')
    if not isinstance(text, str) or not text.strip():
        raise ValueError('almanac is required')
    opts: Dict[str, Any] = {'part': payload.get('part', 2)}
    if isinstance(opts['part'], bool) or opts['part'] not in (1, 2):
        raise ValueError('part must be 1 or 2')
    for key in ('workers', 'chunk_size'):
        value = payload.get(key)
        if value is not None and (not isinstance(value, int) or isinstance(value, bool) or value < 1):
            raise ValueError(f'{key} must be a positive integer')
        opts[key] = value
    for key in ('origin', 'target'):
        value = payload.get(key)
        if value is not None and (not isinstance(value, str) or not value):
            raise ValueError(f'{key} must be a category name')
        opts[key] = value
    return opts


@app.post('/searches')
def post_search():
    payload = request.get_json(force=True, silent=True) or {}
    try:
        opts = search_options(payload)
    except ValueError as e:
        return _error(str(e), 400)
    sid = start_run(payload['almanac'], **opts)
    logger.info("queued search %s (part %s)", sid, opts['part'])
    return jsonify({'search_id': sid, 'status': 'queued'})


@app.get('/searches')
def get_searches():
    return jsonify({'searches': list_runs()})


@app.get('/searches/<sid>')
def get_search(sid: str):
    run = REGISTRY.get(sid)
    if run is None:
        return _error('not_found', 404)
    return jsonify(run.view())


@app.get('/searches/<sid>/artifacts/<name>')
def get_artifact(sid: str, name: str):
    run = REGISTRY.get(sid)
    if run is None:
        return _error('not_found', 404)
    body = run.artifacts.get(name)
    if body is None:
        return _error('artifact_not_found', 404)
    return Response(body, mimetype=ARTIFACT_TYPES.get(Path(name).suffix, 'application/octet-stream'))


@app.get('/openapi.json')
def get_openapi():
    return jsonify(json.loads(OPENAPI_PATH.read_text()))


if sock is not None:
    @sock.route('/searches/<sid>/events')
    def stream_events(ws, sid):  # pragma: no cover (needs a websocket client)
        # Pushes Parse/Validate/Search progress/Export events as they are recorded,
        # then closes once the run has finished and everything was sent.
        run = REGISTRY.get(sid)
        if run is None:
            ws.close(message='not_found')
            return
        seen = 0
        while True:
            events, finished = run.events_since(seen)
            for ev in events:
                ws.send(json.dumps(ev))
            seen += len(events)
            if finished and not events:
                break
        ws.close()


if __name__ == '__main__':
    app.run(host='0.0.0.0', port=8000)
