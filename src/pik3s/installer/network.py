"""Network reachability probes"""

from typing import Dict, List

import httpx


def probe_endpoints(urls: List[str], timeout: float = 5.0) -> Dict[str, str]:
    """Return an error message per unreachable URL; empty when all respond.

    Any HTTP response counts as reachable; only transport failures are
    reported.
    """
    failures = {}

    with httpx.Client(timeout=timeout, follow_redirects=True) as client:
        for url in urls:
            try:
                client.head(url)
            except httpx.HTTPError as e:
                failures[url] = str(e) or type(e).__name__

    return failures
