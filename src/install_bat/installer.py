"""Installer script rendering.

Turns a ConfigurationRecord into the files an operator copies to a Windows
cell: the three etcd certificate files and one install_<zone>.bat per zone.
Rendering is pure; nothing here touches the filesystem.
"""

import re
from dataclasses import dataclass
from typing import Optional

from install_bat.common import ValidationError
from install_bat.manifest import ConfigurationRecord

CA_CERT_FILE = 'ca.crt'
CLIENT_CERT_FILE = 'client.crt'
CLIENT_KEY_FILE = 'client.key'

USERNAME_PLACEHOLDER = '[USERNAME]'
PASSWORD_PLACEHOLDER = '[PASSWORD]'

STACK = 'windows2012R2'

# Batch continuation is " ^" at end of line, CRLF between lines
LINE_CONTINUATION = ' ^'
CRLF = '\r\n'

_USERNAME_PATTERN = re.compile(r'^[a-zA-Z0-9]+$')


@dataclass(frozen=True)
class RenderedArtifact:
    """A generated file: name relative to the output dir plus its content."""
    filename: str
    content: str


@dataclass(frozen=True)
class RenderOptions:
    """Optional operator values for the installer command.

    Attributes:
        windows_username: Replaces [USERNAME] when set
        windows_password: Replaces [PASSWORD] when set (escaped for cmd.exe)
        external_ip: Adds EXTERNAL_IP when set
    """
    windows_username: Optional[str] = None
    windows_password: Optional[str] = None
    external_ip: Optional[str] = None


def validate_credentials(username: Optional[str], password: Optional[str]) -> None:
    """Reject Windows credentials that cannot be embedded in a batch file.

    Raises:
        ValidationError: If username is not alphanumeric or password is empty or has a double-quote
    """
    if username is not None and not _USERNAME_PATTERN.match(username):
        raise ValidationError("Invalid windows username, must be alphanumeric")
    if password is not None and not password:
        raise ValidationError("Invalid windows password, must not be empty")
    if password is not None and '"' in password:
        raise ValidationError("Invalid windows password, must not contain double-quotes")


def escape_windows_password(password: str) -> str:
    """Escape a password for use as an msiexec property in cmd.exe."""
    return '"""' + password.replace('%', '%%') + '"""'


def installer_filename(zone: str) -> str:
    return f"install_{zone}.bat"


def render_install_script(
    config: ConfigurationRecord,
    zone: str,
    options: Optional[RenderOptions] = None,
) -> str:
    """Render the msiexec command for one redundancy zone."""
    options = options or RenderOptions()

    username = USERNAME_PLACEHOLDER
    if options.windows_username is not None:
        username = options.windows_username
    password = PASSWORD_PLACEHOLDER
    if options.windows_password is not None:
        password = escape_windows_password(options.windows_password)

    lines = [
        'msiexec /norestart /i diego.msi',
        f'  ADMIN_USERNAME={username}',
        f'  ADMIN_PASSWORD={password}',
        f'  CONSUL_IPS={config.consul_ips}',
        f'  CF_ETCD_CLUSTER={config.etcd_cluster_url}',
        f'  STACK={STACK}',
        f'  REDUNDANCY_ZONE={zone}',
        f'  LOGGREGATOR_SHARED_SECRET={config.loggregator_shared_secret}',
    ]
    if options.external_ip:
        lines.append(f'  EXTERNAL_IP={options.external_ip}')
    if config.syslog is not None:
        lines.append(f'  SYSLOG_HOST_IP={config.syslog.host}')
        if config.syslog.port is not None:
            lines.append(f'  SYSLOG_PORT={config.syslog.port}')
    lines += [
        f'  ETCD_CA_FILE=%cd%\\{CA_CERT_FILE}',
        f'  ETCD_CERT_FILE=%cd%\\{CLIENT_CERT_FILE}',
        f'  ETCD_KEY_FILE=%cd%\\{CLIENT_KEY_FILE}',
    ]

    body = (LINE_CONTINUATION + CRLF).join(lines)
    return body + CRLF


def render(
    config: ConfigurationRecord,
    options: Optional[RenderOptions] = None,
) -> list[RenderedArtifact]:
    """Render certificate files and per-zone installer scripts.

    Args:
        config: Extracted manifest configuration
        options: Optional operator credentials and external IP

    Returns:
        Certificates (ca.crt, client.crt, client.key) followed by one
        install_<zone>.bat per zone in zone order

    Raises:
        ValidationError: If operator credentials are unusable
    """
    if options is not None:
        validate_credentials(options.windows_username, options.windows_password)

    certs = config.etcd_certificates
    artifacts = [
        RenderedArtifact(CA_CERT_FILE, certs.ca_cert),
        RenderedArtifact(CLIENT_CERT_FILE, certs.client_cert),
        RenderedArtifact(CLIENT_KEY_FILE, certs.client_key),
    ]
    for zone in config.zones:
        artifacts.append(RenderedArtifact(
            installer_filename(zone),
            render_install_script(config, zone, options),
        ))
    return artifacts
