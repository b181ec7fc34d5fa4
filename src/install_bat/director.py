"""HTTP client for the BOSH director API.

Only two endpoints are used:
- GET /deployments: index of {name, releases: [{name, version}]}
- GET /deployments/<name>: {manifest: <YAML text>}
"""

import logging
from pathlib import Path
from typing import Any, Optional, Union

import requests
import urllib3

from install_bat.common import AuthenticationError, MissingFieldError, ParseError, TransportError
from install_bat.manifest import Deployment

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


class DirectorClient:
    """Read-only client for the deployment endpoints of a BOSH director."""

    def __init__(
        self,
        url: str,
        username: str = 'admin',
        password: str = 'admin',
        insecure: bool = False,
        ca_cert: Optional[Path] = None,
        timeout: int = DEFAULT_TIMEOUT,
    ):
        """Initialize director client.

        Args:
            url: Director URL (e.g., https://192.0.2.6:25555)
            username: HTTP Basic auth user
            password: HTTP Basic auth password
            insecure: Skip TLS certificate verification
            ca_cert: CA bundle used for verification when not insecure
            timeout: Per-request timeout in seconds
        """
        self.url = url.rstrip('/')
        self.auth = (username, password)
        self.insecure = insecure
        self.ca_cert = ca_cert
        self.timeout = timeout

        if insecure:
            # Suppress SSL warnings for self-signed director certs
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    @property
    def verify(self) -> Union[bool, str]:
        """Value for requests' verify= argument."""
        if self.insecure:
            return False
        if self.ca_cert:
            return str(self.ca_cert)
        return True

    def _get_json(self, path: str) -> Any:
        url = f"{self.url}{path}"
        logger.debug("GET %s", url)

        try:
            resp = requests.get(
                url,
                auth=self.auth,
                headers={'Accept': 'application/json'},
                verify=self.verify,
                timeout=self.timeout,
            )
        except requests.exceptions.SSLError as e:
            raise TransportError(f"TLS error connecting to {self.url}: {e}") from e
        except requests.exceptions.ConnectionError as e:
            raise TransportError(f"Cannot connect to {self.url}: {e}") from e
        except requests.exceptions.Timeout as e:
            raise TransportError(f"Timeout connecting to {self.url}") from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Request to {url} failed: {e}") from e

        if resp.status_code in (401, 403):
            raise AuthenticationError(
                f"Director rejected credentials for user '{self.auth[0]}' ({resp.status_code})"
            )
        if resp.status_code != 200:
            raise TransportError(
                f"Unexpected director response: {resp.status_code} - {resp.text[:100]}"
            )

        try:
            return resp.json()
        except ValueError as e:
            raise TransportError(f"Invalid JSON response from {url}: {e}") from e

    def list_deployments(self) -> list[Deployment]:
        """Fetch the deployment index.

        Raises:
            TransportError: On network failure or unexpected response
            AuthenticationError: If credentials are rejected
        """
        data = self._get_json('/deployments')
        if not isinstance(data, list):
            raise TransportError("Unexpected /deployments response: expected a list")
        return [Deployment.from_dict(d) for d in data if isinstance(d, dict) and 'name' in d]

    def get_manifest(self, name: str) -> str:
        """Fetch the raw manifest text of a deployment.

        Raises:
            TransportError: On network failure or unexpected response
            AuthenticationError: If credentials are rejected
            MissingFieldError: If the response has no manifest
            ParseError: If the manifest is not text
        """
        data = self._get_json(f'/deployments/{name}')
        manifest = data.get('manifest') if isinstance(data, dict) else None
        if manifest is None:
            raise MissingFieldError('manifest')
        if not isinstance(manifest, str):
            raise ParseError(f"Manifest of '{name}' is not text: {type(manifest).__name__}")
        return manifest
