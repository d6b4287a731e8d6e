# msal_token.py
# Access token for the Verified ID request service (client credentials flow).
import logging

import msal

logging.basicConfig(level=logging.INFO)

_MSAL_APPS = {}


def _msal_app(mode):
    key = (mode.authority, mode.tenant_id, mode.client_id)
    app = _MSAL_APPS.get(key)
    if app is None:
        app = msal.ConfidentialClientApplication(
            mode.client_id,
            authority=mode.authority.rstrip("/") + "/" + mode.tenant_id,
            client_credential=mode.client_secret,
        )
        _MSAL_APPS[key] = app
    return app


def get_access_token(mode):
    """
    Return (access_token, error, error_description).
    access_token is None when the token could not be acquired.
    """
    if not mode.client_id or not mode.client_secret or not mode.tenant_id:
        return None, "invalid_client", "AZURE_TENANT_ID, AZURE_CLIENT_ID and AZURE_CLIENT_SECRET must be set"
    try:
        result = _msal_app(mode).acquire_token_for_client(scopes=[mode.scope])
    except Exception as e:
        logging.exception("msal token request failed")
        return None, "token_error", str(e)
    if "access_token" in result:
        return result["access_token"], None, None
    logging.error("failed to acquire access token: %s : %s", result.get("error"), result.get("error_description"))
    return None, result.get("error"), result.get("error_description")
