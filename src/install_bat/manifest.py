"""Manifest parsing and configuration extraction.

A BOSH deployment manifest is YAML. Only a handful of values are needed to
build the Windows installer scripts:

- properties.consul.agent.servers.lan: consul agent addresses
- properties.etcd.machines: etcd addresses (first one wins)
- properties.loggregator_endpoint.shared_secret: metron shared secret
- properties.diego.etcd.{ca_cert,client_cert,client_key}: etcd client TLS
- jobs[*].properties.diego.rep.zone: redundancy zones (optional per job)
- properties.syslog_daemon_config.{address,port}: syslog drain (optional)

Properties set on the first rep job (a job with properties.diego.rep) win
over the global properties block. Ops Manager manifests have no global
block at all, so every value may come from the rep job.

Everything is validated here, once, so rendering never sees a missing value.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

import yaml

from install_bat.common import (
    DeploymentNotFoundError,
    MissingFieldError,
    ParseError,
    get_in,
)

logger = logging.getLogger(__name__)

# Releases a deployment must carry to be the Diego deployment
DEFAULT_REQUIRED_RELEASES = frozenset({'cf', 'diego'})

ETCD_PORT = 4001

CONSUL_PATH = ('properties', 'consul', 'agent', 'servers', 'lan')
ETCD_MACHINES_PATH = ('properties', 'etcd', 'machines')
SHARED_SECRET_PATH = ('properties', 'loggregator_endpoint', 'shared_secret')
ETCD_CERTS_PATH = ('properties', 'diego', 'etcd')
ZONE_PATH = ('properties', 'diego', 'rep', 'zone')
SYSLOG_PATH = ('properties', 'syslog_daemon_config')
REP_PATH = ('properties', 'diego', 'rep')


@dataclass
class Deployment:
    """Entry from the director's deployment index."""
    name: str
    releases: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> 'Deployment':
        """Create Deployment from a GET /deployments entry."""
        releases = [r.get('name') for r in data.get('releases') or [] if isinstance(r, dict)]
        return cls(
            name=data['name'],
            releases=[r for r in releases if r],
        )


@dataclass(frozen=True)
class EtcdCertificates:
    """PEM material for the etcd client."""
    ca_cert: str
    client_cert: str
    client_key: str


@dataclass(frozen=True)
class SyslogConfig:
    """Syslog drain the Windows cell forwards logs to."""
    host: str
    port: Optional[str] = None


@dataclass(frozen=True)
class ConfigurationRecord:
    """Values extracted from a manifest, immutable for the rest of the run.

    Attributes:
        consul_agents: Consul agent addresses in manifest order
        etcd_cluster_url: http://<first etcd machine>:4001
        zones: Distinct redundancy zones, first-seen order
        loggregator_shared_secret: Shared secret for the metron endpoint
        etcd_certificates: CA, client cert and client key
        syslog: Syslog drain, None when the manifest configures none
    """
    consul_agents: tuple[str, ...]
    etcd_cluster_url: str
    zones: tuple[str, ...]
    loggregator_shared_secret: str
    etcd_certificates: EtcdCertificates
    syslog: Optional[SyslogConfig] = None

    @property
    def consul_ips(self) -> str:
        """Consul agents as a comma-separated connection list."""
        return ','.join(self.consul_agents)


def select_deployment(
    deployments: Iterable[Deployment],
    required_releases: Iterable[str] = DEFAULT_REQUIRED_RELEASES,
) -> Deployment:
    """Return the first deployment carrying every required release.

    Raises:
        DeploymentNotFoundError: If no deployment qualifies
    """
    required = set(required_releases)
    for deployment in deployments:
        if required.issubset(deployment.releases):
            logger.debug("Selected deployment %s", deployment.name)
            return deployment
    raise DeploymentNotFoundError(required)


def parse_manifest(text: str) -> dict:
    """Parse manifest YAML into a mapping.

    Raises:
        ParseError: If the text is not YAML or not a mapping at the top level
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ParseError(f"Invalid manifest YAML: {e}") from e

    if not isinstance(data, dict):
        raise ParseError(f"Manifest must be a mapping, got {type(data).__name__}")
    return data


def first_rep_job(jobs: list) -> Optional[dict]:
    """First job that runs the Diego rep, or None."""
    for job in jobs:
        if isinstance(get_in(job, *REP_PATH), dict):
            return job
    return None


def lookup(manifest: dict, rep_job: Optional[dict], path: tuple) -> Optional[object]:
    """Value at path on the rep job, falling back to the manifest itself."""
    value = get_in(rep_job, *path)
    if value is None:
        value = get_in(manifest, *path)
    return value


def _require(manifest: dict, rep_job: Optional[dict], path: tuple) -> object:
    value = lookup(manifest, rep_job, path)
    if value is None:
        raise MissingFieldError('.'.join(path))
    return value


def _require_list(manifest: dict, rep_job: Optional[dict], path: tuple) -> list:
    value = _require(manifest, rep_job, path)
    if not isinstance(value, list):
        raise MissingFieldError('.'.join(path))
    return value


def job_zone(job: object) -> Optional[str]:
    """Zone of a single job, or None when the job has none."""
    zone = get_in(job, *ZONE_PATH)
    if zone is None:
        return None
    return str(zone)


def collect_zones(jobs: list) -> tuple[str, ...]:
    """Distinct zones across jobs, keeping first-seen order."""
    zones: dict[str, None] = {}
    for job in jobs:
        zone = job_zone(job)
        if zone is not None:
            zones.setdefault(zone, None)
    return tuple(zones)


def extract_syslog(manifest: dict, rep_job: Optional[dict]) -> Optional[SyslogConfig]:
    """Syslog drain from syslog_daemon_config, or None without an address."""
    address = lookup(manifest, rep_job, SYSLOG_PATH + ('address',))
    if address is None or address == '':
        return None
    port = lookup(manifest, rep_job, SYSLOG_PATH + ('port',))
    return SyslogConfig(
        host=str(address),
        port=None if port is None else str(port),
    )


def etcd_url(machine: str) -> str:
    """Build the etcd cluster URL for one machine address."""
    return f"http://{machine}:{ETCD_PORT}"


def extract_configuration(text: str) -> ConfigurationRecord:
    """Parse manifest text and extract the installer configuration.

    Args:
        text: Raw manifest YAML as returned by the director

    Returns:
        ConfigurationRecord with every required value present

    Raises:
        ParseError: If the manifest is not valid YAML
        MissingFieldError: If a required path is absent
    """
    manifest = parse_manifest(text)

    jobs = manifest.get('jobs')
    if jobs is None:
        jobs = []
    elif not isinstance(jobs, list):
        raise MissingFieldError('jobs')

    rep_job = first_rep_job(jobs)
    if rep_job is not None:
        logger.debug("Reading properties from rep job '%s'", rep_job.get('name'))

    consul_agents = tuple(str(a) for a in _require_list(manifest, rep_job, CONSUL_PATH))

    machines = _require_list(manifest, rep_job, ETCD_MACHINES_PATH)
    if not machines or machines[0] is None:
        raise MissingFieldError('.'.join(ETCD_MACHINES_PATH) + '[0]')

    shared_secret = str(_require(manifest, rep_job, SHARED_SECRET_PATH))

    certs = EtcdCertificates(
        ca_cert=str(_require(manifest, rep_job, ETCD_CERTS_PATH + ('ca_cert',))),
        client_cert=str(_require(manifest, rep_job, ETCD_CERTS_PATH + ('client_cert',))),
        client_key=str(_require(manifest, rep_job, ETCD_CERTS_PATH + ('client_key',))),
    )

    zones = collect_zones(jobs)
    logger.debug("Found %d zone(s) across %d job(s)", len(zones), len(jobs))

    return ConfigurationRecord(
        consul_agents=consul_agents,
        etcd_cluster_url=etcd_url(str(machines[0])),
        zones=zones,
        loggregator_shared_secret=shared_secret,
        etcd_certificates=certs,
        syslog=extract_syslog(manifest, rep_job),
    )


extract = extract_configuration
