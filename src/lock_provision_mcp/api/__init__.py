"""Client for the remote certificate-issuing service."""

from .client import CertificateServiceClient, DeviceKeys, IssuedCertificate
