import json
import os
import sys
import logging
import socket


# Set up basic logging configuration
logging.basicConfig(level=logging.INFO)

DEFAULT_API_ENDPOINT = "https://verifiedid.did.msidentity.com/v1.0/verifiableCredentials/"
DEFAULT_SCOPE = "3db474b9-6a0c-4840-96ac-1fceb342124f/.default"
DEFAULT_CACHE_EXPIRES_IN_SECONDS = 300


def extract_ip():
    """
    Attempts to determine the local IP address of the machine.
    Falls back to localhost (127.0.0.1) if network detection fails.
    """
    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        # This doesn't actually connect to the internet, just triggers routing
        s.connect(('10.255.255.255', 1))
        ip = s.getsockname()[0]
    except Exception:
        ip = '127.0.0.1'
    finally:
        s.close()
    return ip


def _bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _load_keys():
    # keys.json is optional, secrets may come from the environment only
    try:
        with open('keys.json') as f:
            return json.load(f)
    except FileNotFoundError:
        return {}
    except Exception:
        logging.error('Unable to load keys.json, file corrupted.')
        sys.exit(1)


class currentMode:
    """
    Represents the runtime environment configuration for the application.
    Loads the Verified ID settings and secrets and sets runtime properties.
    """
    def __init__(self, myenv):
        self.myenv = myenv

        keys = _load_keys()

        # Shared secret the Verified ID service echoes back in callbacks
        self.api_key = os.getenv("API-KEY") or os.getenv("API_KEY") or keys.get("api_key")

        # Correlation store
        self.cache_expires_in_seconds = int(os.getenv("CACHE_EXPIRES_IN_SECONDS", DEFAULT_CACHE_EXPIRES_IN_SECONDS))

        # Verified ID request service
        self.api_endpoint = os.getenv("VERIFIEDID_API_ENDPOINT", DEFAULT_API_ENDPOINT)
        self.api_timeout = float(os.getenv("API_TIMEOUT", "30"))
        self.did_authority = os.getenv("VERIFIEDID_DID_AUTHORITY", "")
        self.credential_type = os.getenv("VERIFIEDID_CREDENTIAL_TYPE", "VerifiedCredentialExpert")
        self.credential_manifest = os.getenv("VERIFIEDID_CREDENTIAL_MANIFEST", "")
        self.client_name = os.getenv("VERIFIEDID_CLIENT_NAME", "Python Verified ID sample")
        self.purpose = os.getenv("VERIFIEDID_PURPOSE", "")
        self.include_qrcode = _bool("VERIFIEDID_INCLUDE_QRCODE")
        self.include_receipt = _bool("VERIFIEDID_INCLUDE_RECEIPT")
        self.use_face_check = _bool("VERIFIEDID_USE_FACE_CHECK")
        self.photo_claim_name = os.getenv("VERIFIEDID_PHOTO_CLAIM_NAME", "")
        self.issuance_pin_code_length = int(os.getenv("VERIFIEDID_ISSUANCE_PIN_CODE_LENGTH", "0"))

        # Entra ID app registration used to get the access token
        self.tenant_id = os.getenv("AZURE_TENANT_ID", "")
        self.client_id = os.getenv("AZURE_CLIENT_ID", "")
        self.client_secret = os.getenv("AZURE_CLIENT_SECRET") or keys.get("client_secret")
        self.authority = os.getenv("AZURE_AUTHORITY", "https://login.microsoftonline.com/")
        self.scope = os.getenv("VERIFIEDID_SCOPE", DEFAULT_SCOPE)

        # did.json and did-configuration.json
        self.resources_path = os.getenv("RESOURCES_PATH", "./resources")

        # Define runtime behavior depending on environment
        if self.myenv == 'aws':
            # Configuration for AWS environment
            self.server = os.getenv("SERVER_URL", 'https://verifiedid-sample.com/')
            self.IP = '0.0.0.0'
            self.port = int(os.getenv("PORT", "4000"))
        elif self.myenv == 'local':
            # Configuration for local development
            self.IP = extract_ip()
            self.port = int(os.getenv("PORT", "4000"))
            self.server = f'http://{self.IP}:{self.port}/'
        else:
            logging.error('Invalid environment setting. Choose either "aws" or "local".')
            sys.exit(1)

        if not self.api_key:
            logging.warning("API-KEY is not set, callbacks from the Verified ID service will be rejected")
