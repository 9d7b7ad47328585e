"""Certificate signing requests for Apple Pass Type ID certificates."""

import logging

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

logger = logging.getLogger(__name__)

CSR_FILENAME = "cert.certSigningRequest"

REGION_LOCATIONS = {
    "EU": ("DE", "Berlin", "Berlin"),
    "US": ("US", "California", "San Francisco"),
}


def build_subject(account: dict) -> x509.Name:
    country, state, locality = REGION_LOCATIONS.get(account.get("region"), REGION_LOCATIONS["US"])
    return x509.Name([
        x509.NameAttribute(NameOID.COMMON_NAME, account["email"]),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, account.get("name") or account["email"]),
        x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, "PassKit"),
        x509.NameAttribute(NameOID.COUNTRY_NAME, country),
        x509.NameAttribute(NameOID.STATE_OR_PROVINCE_NAME, state),
        x509.NameAttribute(NameOID.LOCALITY_NAME, locality),
    ])


def generate_csr(account: dict) -> tuple[bytes, bytes]:
    """Generate a 2048-bit RSA key and a CSR for the account.

    Returns:
        (csr_pem, private_key_pem)
    """
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    csr = (
        x509.CertificateSigningRequestBuilder()
        .subject_name(build_subject(account))
        .sign(private_key, hashes.SHA256())
    )
    private_key_pem = private_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    logger.info(f"Generated CSR for account {account['id']}")
    return csr.public_bytes(serialization.Encoding.PEM), private_key_pem
