# http_session.py

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry


def create_requests_session(pool_size=10):
    """Create a requests session with connection pooling and retries disabled.

    Any fallback between URLs is done by the caller, never at session level.
    """
    session = requests.Session()
    retry_strategy = Retry(
        total=0,
        backoff_factor=0,
        status_forcelist=[]
    )
    adapter = HTTPAdapter(max_retries=retry_strategy, pool_connections=pool_size, pool_maxsize=pool_size)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session
