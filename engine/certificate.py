"""Self-signed certificate generation with the openssl CLI."""

import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Union

import structlog

from .errors import CertificateError


logger = structlog.get_logger()

CERTIFICATE_DAYS = 365
KEY_BITS = 2048


def create_self_signed_certificate(
    domain_name: str, output_path: Union[str, Path], password: str
) -> Path:
    """
    Create a password-protected PFX holding a self-signed certificate.

    The certificate covers the domain and its wildcard subdomain. Only the
    PFX file is kept; the intermediate key and PEM live in a temporary
    directory.

    Args:
        domain_name: Domain the certificate is issued for
        output_path: Where to write the PFX file
        password: Export password of the PFX file

    Returns:
        Path to the PFX file

    Raises:
        CertificateError: If openssl is missing or fails
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with tempfile.TemporaryDirectory(prefix="webapp-cert-") as tmpdir:
        key_path = Path(tmpdir) / "key.pem"
        cert_path = Path(tmpdir) / "cert.pem"

        _run_openssl(
            [
                "req",
                "-x509",
                "-newkey",
                f"rsa:{KEY_BITS}",
                "-nodes",
                "-keyout",
                str(key_path),
                "-out",
                str(cert_path),
                "-days",
                str(CERTIFICATE_DAYS),
                "-subj",
                f"/CN={domain_name}",
                "-addext",
                f"subjectAltName=DNS:{domain_name},DNS:*.{domain_name}",
            ]
        )

        # Password is read from the environment, never from argv
        _run_openssl(
            [
                "pkcs12",
                "-export",
                "-out",
                str(output_path),
                "-inkey",
                str(key_path),
                "-in",
                str(cert_path),
                "-passout",
                "env:WEBAPP_CERT_PASSWORD",
            ],
            env={"WEBAPP_CERT_PASSWORD": password},
        )

    logger.info("Created self-signed certificate", domain=domain_name, path=str(output_path))

    return output_path


def _run_openssl(args: list[str], env: dict | None = None) -> subprocess.CompletedProcess:
    """
    Run openssl command.

    Args:
        args: openssl command arguments
        env: Extra environment variables

    Returns:
        Completed process

    Raises:
        CertificateError: If openssl is missing or the command fails
    """
    if not shutil.which("openssl"):
        raise CertificateError("openssl command not found. Please install OpenSSL.")

    cmd = ["openssl"] + args

    logger.debug("Running openssl", subcommand=args[0])

    try:
        return subprocess.run(
            cmd,
            capture_output=True,
            check=True,
            env={**os.environ, **(env or {})},
        )
    except subprocess.CalledProcessError as e:
        stderr = e.stderr.decode(errors="replace") if e.stderr else ""
        raise CertificateError(f"openssl {args[0]} failed: {stderr.strip()}") from e
