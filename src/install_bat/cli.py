#!/usr/bin/env python3
"""CLI entry point for install-bat.

Usage:
    create-install-bat <director-url> <output-dir> [options]

e.g. create-install-bat https://192.0.2.6:25555 /tmp/scripts -k

Fetches the Diego deployment manifest from the BOSH director and writes
ca.crt, client.crt, client.key and one install_<zone>.bat per zone.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from install_bat.common import EXIT_SUCCESS, InstallBatError
from install_bat.config import Settings, load_settings
from install_bat.director import DirectorClient
from install_bat.installer import render
from install_bat.manifest import extract_configuration, select_deployment
from install_bat.writer import write_artifacts

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="create-install-bat",
        description="Generate Diego Windows installer scripts from a BOSH deployment",
    )
    parser.add_argument(
        "director_url",
        nargs="?",
        help="BOSH director URL (e.g., https://bosh.example.com:25555). "
        "Env: BOSH_DIRECTOR_URL",
    )
    parser.add_argument(
        "output_dir",
        nargs="?",
        type=Path,
        help="Output directory (e.g., /tmp/scripts). Env: INSTALL_BAT_OUTPUT_DIR",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        help="YAML file with default settings",
    )
    parser.add_argument("--username", "-u", help="Director username (default: admin). Env: BOSH_USERNAME")
    parser.add_argument("--password", "-p", help="Director password (default: admin). Env: BOSH_PASSWORD")
    parser.add_argument(
        "--ca-cert",
        dest="ca_cert",
        type=Path,
        help="CA certificate for director verification. Env: BOSH_CA_CERT",
    )
    parser.add_argument(
        "--insecure",
        "-k",
        action="store_true",
        help="Skip SSL certificate verification (for self-signed certs)",
    )
    parser.add_argument("--timeout", type=int, help="Request timeout in seconds (default: 30)")
    parser.add_argument(
        "--release",
        dest="releases",
        action="append",
        metavar="NAME",
        help="Release the deployment must contain (repeatable, default: cf and diego)",
    )
    parser.add_argument("--windows-username", dest="windows_username",
                        help="Windows admin username (default: [USERNAME] placeholder)")
    parser.add_argument("--windows-password", dest="windows_password",
                        help="Windows admin password (default: [PASSWORD] placeholder)")
    parser.add_argument("--external-ip", dest="external_ip",
                        help="(optional) IP address of this cell")
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output",
    )
    return parser


def generate(settings: Settings) -> list[Path]:
    """Run the fetch -> extract -> render -> write pipeline.

    Every artifact is rendered before anything is written, so a bad
    manifest leaves the output directory untouched.

    Raises:
        InstallBatError: On any failure
    """
    client = DirectorClient(
        url=settings.director_url,
        username=settings.username,
        password=settings.password,
        insecure=settings.insecure,
        ca_cert=settings.ca_cert,
        timeout=settings.timeout,
    )

    deployments = client.list_deployments()
    deployment = select_deployment(deployments, settings.required_releases)
    logger.debug("Using deployment '%s'", deployment.name)

    manifest_text = client.get_manifest(deployment.name)
    config = extract_configuration(manifest_text)
    artifacts = render(config, settings.render_options)

    return write_artifacts(artifacts, settings.output_dir)


def main(argv: Optional[list] = None) -> int:
    """CLI entry point.

    Returns:
        Exit code
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",  # Simple format for CLI output
    )

    try:
        settings = load_settings(args)
        if settings.insecure:
            logger.warning("Warning: SSL certificate verification disabled")
        generate(settings)
    except InstallBatError as e:
        logger.error("Error: %s - %s", e.code, e.message)
        return e.exit_code

    return EXIT_SUCCESS


if __name__ == "__main__":
    sys.exit(main())
