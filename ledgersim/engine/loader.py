# ledgersim/engine/loader.py
#
# Loads compiled contract bytecode (.wasm) and interface descriptions (.abi).
# A path that exists on disk is read locally; an http(s) URL is fetched.
import json
import logging
import os
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


def _is_url(location: str) -> bool:
    return location.startswith(('http://', 'https://'))


def _fetch(location: str, client: Optional[httpx.Client] = None) -> httpx.Response:
    logger.info(f"Fetching {location}")
    if client is not None:
        response = client.get(location)
    else:
        with httpx.Client(timeout=DEFAULT_TIMEOUT, follow_redirects=True) as own_client:
            response = own_client.get(location)
    response.raise_for_status()
    return response


def read_wasm(file_name: str, client: Optional[httpx.Client] = None) -> bytes:
    """Return the raw bytes of a contract's compiled code.

    :param file_name: Local path or http(s) URL.
    :param client: Optional httpx client used for remote locations.
    :raises FileNotFoundError: If a local path does not exist.
    :raises httpx.HTTPError: If the remote fetch fails.
    """
    if os.path.exists(file_name):
        with open(file_name, 'rb') as f:
            return f.read()
    if _is_url(file_name):
        return _fetch(file_name, client).content
    raise FileNotFoundError(f"The file could not be found at path: {file_name}")


def read_abi(file_name: str, client: Optional[httpx.Client] = None) -> str:
    """Return the text of a contract's interface description."""
    if os.path.exists(file_name):
        with open(file_name, 'r', encoding='utf-8') as f:
            return f.read()
    if _is_url(file_name):
        return _fetch(file_name, client).text
    raise FileNotFoundError(f"The file could not be found at path: {file_name}")


def load_abi(file_name: str, client: Optional[httpx.Client] = None) -> dict:
    return json.loads(read_abi(file_name, client))
