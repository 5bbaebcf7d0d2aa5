from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from functools import wraps
from types import SimpleNamespace

import pytz
from flask import Flask, jsonify, redirect, render_template, request, url_for

import auth
from amber import AmberClient
from app_logging import configure_logging
from config import settings
from errors import AmberError, RateLimited
from fetcher import LIVE_RANGES
from models import db
from scheduler import BackgroundJobScheduler
from storage import SqlSessionStore
from views import LiveView, ReportView

VIEW_SETTINGS = (
    'OVERVIEW_DAYS',
    'CHUNK_DAYS',
    'PRICE_RESOLUTION',
    'FETCH_WORKERS',
    'AUTO_REFRESH_MINUTES',
)


def _jsonable(val):
    if is_dataclass(val):
        return _jsonable(asdict(val))
    if isinstance(val, dict):
        return {k: _jsonable(v) for k, v in val.items()}
    if isinstance(val, (list, tuple)):
        return [_jsonable(v) for v in val]
    if isinstance(val, (date, datetime)):
        return val.isoformat()
    return val


def create_app(test_config=None, client=None, scheduler=None, now=None):
    app = Flask(__name__)
    app.config.from_object(settings)
    if test_config:
        app.config.update(test_config)

    configure_logging(app.config['LOG_LEVEL'])
    db.init_app(app)
    with app.app_context():
        db.create_all()

    store = SqlSessionStore(app)
    if client is None:
        client = AmberClient(
            base_url=app.config['AMBER_BASE_URL'],
            store=store,
            timeout=app.config['REQUEST_TIMEOUT'],
        )
    if scheduler is None:
        scheduler = BackgroundJobScheduler()
    tz = pytz.timezone(app.config['TIMEZONE'])
    view_settings = SimpleNamespace(**{k: app.config[k] for k in VIEW_SETTINGS})

    live = LiveView(client, store, scheduler, tz, view_settings, now)
    daily = ReportView(client, store, scheduler, tz, view_settings, now)
    app.extensions['amber'] = SimpleNamespace(
        store=store, client=client, scheduler=scheduler, live=live, daily=daily
    )

    def login_required(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if not auth.is_authenticated(store):
                return redirect(url_for('login'))
            return fn(*args, **kwargs)
        return wrapper

    def polling() -> bool:
        return request.args.get('poll') == '1'

    @app.route('/')
    def home():
        if auth.is_authenticated(store):
            return redirect(url_for('live_usage'))
        return redirect(url_for('login'))

    @app.route('/login', methods=['GET', 'POST'])
    def login():
        if auth.is_authenticated(store):
            return redirect(url_for('live_usage'))
        error = None
        wait = 0
        api_key = store.get_api_key() or ''
        if request.method == 'POST':
            api_key = request.form.get('api_key', '')
            try:
                auth.login(store, client, api_key)
                return redirect(url_for('live_usage'))
            except RateLimited as e:
                # no automatic retry on login, just tell the user how long to wait
                error, wait = e.message, e.wait_seconds
            except AmberError as e:
                error = e.message
        return render_template('login.html', api_key=api_key, error=error, wait=wait)

    @app.route('/logout')
    def logout():
        live.close()
        daily.close()
        auth.logout(store)
        return redirect(url_for('login'))

    @app.route('/live')
    @login_required
    def live_usage():
        range_key = request.args.get('range', '6h')
        if range_key not in LIVE_RANGES:
            range_key = '6h'
        # only the page on screen keeps timers running
        daily.close()
        if not polling() or live.target != range_key or not live.loaded:
            live.navigate(range_key)
        return render_template(
            'live.html',
            state=live.snapshot(),
            range_key=range_key,
            ranges=LIVE_RANGES,
            refresh_seconds=app.config['AUTO_REFRESH_MINUTES'] * 60,
        )

    @app.route('/daily')
    @login_required
    def daily_report():
        live.close()
        raw = request.args.get('date')
        target = None
        if raw:
            try:
                target = date.fromisoformat(raw)
            except ValueError:
                return render_template('daily.html', state={
                    'target': None, 'loading': False, 'report': None, 'retry_in': 0,
                    'error': f'Invalid date: {raw}. Use YYYY-MM-DD.',
                }, detail=True)
        if not polling() or daily.target != target or not daily.loaded:
            daily.navigate(target)
        return render_template('daily.html', state=daily.snapshot(), detail=target is not None)

    @app.route('/api/live')
    @login_required
    def live_state():
        return jsonify(_jsonable(live.snapshot()))

    @app.route('/api/daily')
    @login_required
    def daily_state():
        return jsonify(_jsonable(daily.snapshot()))

    return app


if __name__ == '__main__':
    create_app().run(host='0.0.0.0', port=5000)
