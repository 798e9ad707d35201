"""Host operation names and URL-intent endpoints.

Centralizes the wire-level names so every operation module uses the same
strings the host dispatches on.

Conventions:
- Direct host operations are posted with their operation name.
- URL-style intents are posted as URL_INTENT_OPERATION with
  parameters {"url": url_intent(base, path), "params": {...}}.
"""

GET_CREDENTIALS_OPERATION = "elastos_getCredentials"
SIGN_DATA_OPERATION = "elastos_signData"
URL_INTENT_OPERATION = "elastos_essentials_url_intent"

REQUEST_CREDENTIALS_PATH = "requestcredentials"
IMPORT_CREDENTIALS_PATH = "credimport"
DELETE_CREDENTIALS_PATH = "creddelete"
APP_ID_CREDENTIAL_PATH = "appidcredissue"
HIVE_PROVIDER_PATH = "sethiveprovider"
ISSUE_CREDENTIAL_PATH = "credissue"
HIVE_BACKUP_CREDENTIAL_PATH = "hivebackupcredissue"


def url_intent(base: str, path: str) -> str:
    return f"{base.rstrip('/')}/{path}"
