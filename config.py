# config.py

import os
import threading
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv, find_dotenv

# Load environment variables from .env file (install python-dotenv: pip install python-dotenv)
dotenv_path = find_dotenv(usecwd=True)
if dotenv_path:
    load_dotenv(dotenv_path)
else:
    # fallback: try loading default .env in cwd
    load_dotenv()

DEFAULT_REGION = 'us-central1'
DEFAULT_EMULATOR_PORT = 5001
DEFAULT_BASE = '/api'


class Config:
    # --- CORE FLASK CONFIG ---
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

    # --- AI SERVICE CONFIG ---
    # IMPORTANT: Use a real .env file in production. Do NOT commit real keys.
    GEMINI_API_KEY = os.environ.get('GEMINI_API_KEY') or None
    GEMINI_MODEL = os.environ.get('GEMINI_MODEL') or 'gemini-3-flash-preview'
    # REST root for the Generative Language API; the model and
    # ":generateContent" are appended per request.
    GEMINI_API_BASE = os.environ.get('GEMINI_API_BASE') or 'https://generativelanguage.googleapis.com/v1beta'
    GEMINI_TIMEOUT_SECONDS = int(os.environ.get('GEMINI_TIMEOUT_SECONDS', 60))

    # --- FUNCTION HOST ---
    FUNCTIONS_REGION = os.environ.get('FUNCTIONS_REGION') or DEFAULT_REGION
    # When set, the functions are also served at /<project>/<region>/<operation>,
    # the path the local emulator fallback posts to.
    FUNCTIONS_PROJECT = os.environ.get('FUNCTIONS_PROJECT') or None


class TestingConfig(Config):
    TESTING = True
    GEMINI_API_KEY = 'test-key'
    FUNCTIONS_REGION = DEFAULT_REGION
    FUNCTIONS_PROJECT = None


@dataclass(frozen=True)
class DispatcherConfig:
    """Client-side settings for calling the function host.

    Built once (see ``get_default_config``) and handed to a ``Dispatcher``.
    Pass an explicit instance to run several configurations in one process.
    """

    base_url: str = DEFAULT_BASE
    hosting_origin: str = 'http://127.0.0.1:5000'
    emulator_origin: Optional[str] = None
    project: Optional[str] = None
    region: str = DEFAULT_REGION
    emulator_port: int = DEFAULT_EMULATOR_PORT
    use_mock: bool = True
    mock_delay_scale: float = 1.0
    timeout_seconds: float = 60.0

    @classmethod
    def from_env(cls, environ=None):
        env = os.environ if environ is None else environ
        base = env.get('FUNCTIONS_BASE_URL') or env.get('FUNCTIONS_ORIGIN')
        emulator = env.get('FUNCTIONS_EMULATOR') or None
        project = env.get('FUNCTIONS_PROJECT') or None

        # Mock whenever explicitly asked for, or when nothing points at a live host.
        explicit_mock = (env.get('USE_MOCK_FUNCTIONS') or '').strip().lower() == 'true'
        use_mock = explicit_mock or not (base or emulator or project)

        return cls(
            base_url=base.rstrip('/') if base else DEFAULT_BASE,
            hosting_origin=(env.get('FUNCTIONS_HOSTING_ORIGIN') or 'http://127.0.0.1:5000').rstrip('/'),
            emulator_origin=emulator.rstrip('/') if emulator else None,
            project=project,
            region=env.get('FUNCTIONS_REGION') or DEFAULT_REGION,
            emulator_port=int(env.get('FUNCTIONS_EMULATOR_PORT') or DEFAULT_EMULATOR_PORT),
            use_mock=use_mock,
            mock_delay_scale=float(env.get('MOCK_DELAY_SCALE') or 1.0),
            timeout_seconds=float(env.get('FUNCTIONS_TIMEOUT_SECONDS') or 60),
        )

    @property
    def fallback_base(self):
        """Base URL tried after a transport failure, or None when not configured."""
        if self.emulator_origin:
            return self.emulator_origin
        if self.project:
            return f"http://127.0.0.1:{self.emulator_port}/{self.project}/{self.region}"
        return None


_default_config = None
_default_config_lock = threading.Lock()


def get_default_config():
    """Return the process-wide DispatcherConfig, reading the environment on first use."""
    global _default_config
    if _default_config is None:
        with _default_config_lock:
            if _default_config is None:
                _default_config = DispatcherConfig.from_env()
    return _default_config
