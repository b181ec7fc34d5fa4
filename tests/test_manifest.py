"""Tests for install_bat/manifest.py - parsing, selection and extraction."""

import pytest

from conftest import CA_CERT, CLIENT_CERT, CLIENT_KEY, dump_manifest, make_manifest
from install_bat.common import (
    DeploymentNotFoundError,
    MissingFieldError,
    ParseError,
    get_in,
)
from install_bat.manifest import (
    Deployment,
    SyslogConfig,
    collect_zones,
    extract_configuration,
    first_rep_job,
    job_zone,
    parse_manifest,
    select_deployment,
)


class TestGetIn:
    """Tests for get_in() tolerant path lookup."""

    def test_nested_mapping(self):
        assert get_in({'a': {'b': {'c': 1}}}, 'a', 'b', 'c') == 1

    def test_list_index(self):
        assert get_in({'m': ['x', 'y']}, 'm', 0) == 'x'

    def test_missing_key_returns_none(self):
        assert get_in({'a': {}}, 'a', 'b', 'c') is None

    def test_index_out_of_range_returns_none(self):
        assert get_in({'m': []}, 'm', 0) is None

    def test_wrong_container_type_returns_none(self):
        """Walking into a scalar is an absence, not an error."""
        assert get_in({'a': 'scalar'}, 'a', 'b') is None
        assert get_in({'m': ['x']}, 'm', 'key') is None

    def test_empty_path_returns_object(self):
        obj = {'a': 1}
        assert get_in(obj) is obj


class TestDeployment:
    """Tests for Deployment.from_dict()."""

    def test_release_names(self, deployments_index):
        d = Deployment.from_dict(deployments_index[1])
        assert d.name == 'cf-diego'
        assert d.releases == ['cf', 'diego', 'garden-linux']

    def test_missing_releases(self):
        d = Deployment.from_dict({'name': 'bare'})
        assert d.releases == []


class TestSelectDeployment:
    """Tests for select_deployment()."""

    def test_selects_superset(self, deployments_index):
        deployments = [Deployment.from_dict(d) for d in deployments_index]
        assert select_deployment(deployments).name == 'cf-diego'

    def test_first_match_wins(self):
        deployments = [
            Deployment('first', ['cf', 'diego']),
            Deployment('second', ['cf', 'diego']),
        ]
        assert select_deployment(deployments).name == 'first'

    def test_custom_release_set(self):
        deployments = [
            Deployment('cf-diego', ['cf', 'diego']),
            Deployment('full', ['cf', 'diego', 'garden-linux']),
        ]
        selected = select_deployment(deployments, {'cf', 'diego', 'garden-linux'})
        assert selected.name == 'full'

    def test_no_match_raises(self):
        deployments = [Deployment('cf', ['cf']), Deployment('diego', ['diego'])]
        with pytest.raises(DeploymentNotFoundError) as exc_info:
            select_deployment(deployments)
        assert 'cf, diego' in exc_info.value.message

    def test_empty_list_raises(self):
        with pytest.raises(DeploymentNotFoundError):
            select_deployment([])


class TestParseManifest:
    """Tests for parse_manifest()."""

    def test_valid_yaml(self):
        assert parse_manifest("name: test\njobs: []\n") == {'name': 'test', 'jobs': []}

    def test_invalid_yaml_raises(self):
        with pytest.raises(ParseError):
            parse_manifest("name: [unclosed\n")

    def test_non_mapping_raises(self):
        with pytest.raises(ParseError, match='must be a mapping'):
            parse_manifest("- a\n- b\n")

    def test_empty_document_raises(self):
        with pytest.raises(ParseError):
            parse_manifest("")


class TestZones:
    """Tests for per-job zone lookup."""

    def test_job_without_zone(self):
        assert job_zone({'name': 'api', 'properties': {'diego': {}}}) is None

    def test_job_without_properties(self):
        assert job_zone({'name': 'api'}) is None

    def test_numeric_zone_is_string(self):
        assert job_zone({'properties': {'diego': {'rep': {'zone': 1}}}}) == '1'

    def test_dedup_keeps_first_seen_order(self):
        jobs = make_manifest(zones=['z2', 'z1', None, 'z2', 'z1', 'z3'])['jobs']
        assert collect_zones(jobs) == ('z2', 'z1', 'z3')


class TestExtractConfiguration:
    """Tests for extract_configuration()."""

    def test_full_extraction(self, manifest_text):
        config = extract_configuration(manifest_text)

        assert config.consul_agents == ('10.0.0.1', '10.0.0.2')
        assert config.consul_ips == '10.0.0.1,10.0.0.2'
        assert config.etcd_cluster_url == 'http://10.0.0.1:4001'
        assert config.zones == ('z1', 'z2')
        assert config.loggregator_shared_secret == 'secret123'
        assert config.etcd_certificates.ca_cert == CA_CERT
        assert config.etcd_certificates.client_cert == CLIENT_CERT
        assert config.etcd_certificates.client_key == CLIENT_KEY

    def test_only_first_etcd_machine_used(self):
        text = dump_manifest(make_manifest(machines=['10.0.0.1', '10.0.0.2']))
        assert extract_configuration(text).etcd_cluster_url == 'http://10.0.0.1:4001'

    def test_no_zones_is_empty(self):
        text = dump_manifest(make_manifest(zones=[None, None]))
        assert extract_configuration(text).zones == ()

    def test_missing_jobs_is_empty(self):
        manifest = make_manifest()
        del manifest['jobs']
        assert extract_configuration(dump_manifest(manifest)).zones == ()

    def test_empty_consul_list(self):
        config = extract_configuration(dump_manifest(make_manifest(consul=[])))
        assert config.consul_agents == ()
        assert config.consul_ips == ''

    def test_record_is_immutable(self, manifest_text):
        config = extract_configuration(manifest_text)
        with pytest.raises(AttributeError):
            config.zones = ('other',)

    def test_invalid_yaml_raises_parse_error(self):
        with pytest.raises(ParseError):
            extract_configuration("properties: {consul: [")

    @pytest.mark.parametrize('path', [
        ('consul',),
        ('etcd',),
        ('loggregator_endpoint',),
        ('diego', 'etcd', 'client_key'),
    ])
    def test_missing_required_field(self, path):
        manifest = make_manifest()
        parent = manifest['properties']
        for key in path[:-1]:
            parent = parent[key]
        del parent[path[-1]]

        with pytest.raises(MissingFieldError) as exc_info:
            extract_configuration(dump_manifest(manifest))
        assert exc_info.value.path.startswith('properties.' + '.'.join(path))

    def test_empty_etcd_machines_raises(self):
        with pytest.raises(MissingFieldError, match='etcd.machines'):
            extract_configuration(dump_manifest(make_manifest(machines=[])))

    def test_non_list_jobs_raises(self):
        manifest = make_manifest()
        manifest['jobs'] = 'not-a-list'
        with pytest.raises(MissingFieldError, match='jobs'):
            extract_configuration(dump_manifest(manifest))


class TestRepJobProperties:
    """Rep job properties take precedence over the global block."""

    def test_first_rep_job(self):
        jobs = [
            {'name': 'api', 'properties': {'diego': {}}},
            {'name': 'cell_z1', 'properties': {'diego': {'rep': {'zone': 'z1'}}}},
            {'name': 'cell_z2', 'properties': {'diego': {'rep': {'zone': 'z2'}}}},
        ]
        assert first_rep_job(jobs)['name'] == 'cell_z1'

    def test_no_rep_job(self):
        assert first_rep_job([{'name': 'api'}]) is None

    def test_rep_job_overrides_global(self):
        manifest = make_manifest(zones=['z1'])
        manifest['jobs'][0]['properties'].update({
            'etcd': {'machines': ['10.1.0.9']},
            'loggregator_endpoint': {'shared_secret': 'rep-secret'},
        })

        config = extract_configuration(dump_manifest(manifest))

        assert config.etcd_cluster_url == 'http://10.1.0.9:4001'
        assert config.loggregator_shared_secret == 'rep-secret'
        assert config.consul_agents == ('10.0.0.1', '10.0.0.2')

    def test_manifest_without_global_properties(self):
        """Ops Manager manifests keep every property on the jobs."""
        manifest = make_manifest()
        properties = manifest.pop('properties')
        properties['diego']['rep'] = {'zone': 'z1'}
        manifest['jobs'] = [
            {'name': 'database', 'properties': {}},
            {'name': 'cell', 'properties': properties},
        ]

        config = extract_configuration(dump_manifest(manifest))

        assert config.consul_ips == '10.0.0.1,10.0.0.2'
        assert config.etcd_cluster_url == 'http://10.0.0.1:4001'
        assert config.zones == ('z1',)
        assert config.etcd_certificates.ca_cert == CA_CERT

    def test_missing_everywhere_still_raises(self):
        manifest = make_manifest(zones=['z1'])
        del manifest['properties']['loggregator_endpoint']
        with pytest.raises(MissingFieldError, match='loggregator_endpoint'):
            extract_configuration(dump_manifest(manifest))


class TestSyslog:
    """Tests for syslog_daemon_config extraction."""

    def test_absent(self, manifest_text):
        assert extract_configuration(manifest_text).syslog is None

    def test_global(self):
        manifest = make_manifest()
        manifest['properties']['syslog_daemon_config'] = {'address': '192.0.2.20', 'port': 514}

        config = extract_configuration(dump_manifest(manifest))

        assert config.syslog == SyslogConfig(host='192.0.2.20', port='514')

    def test_rep_job_wins(self):
        manifest = make_manifest(zones=['z1'])
        manifest['properties']['syslog_daemon_config'] = {'address': '192.0.2.20', 'port': 514}
        manifest['jobs'][0]['properties']['syslog_daemon_config'] = {'address': '192.0.2.30', 'port': 1514}

        config = extract_configuration(dump_manifest(manifest))

        assert config.syslog == SyslogConfig(host='192.0.2.30', port='1514')

    def test_empty_address_is_absent(self):
        manifest = make_manifest()
        manifest['properties']['syslog_daemon_config'] = {'address': '', 'port': 514}
        assert extract_configuration(dump_manifest(manifest)).syslog is None
