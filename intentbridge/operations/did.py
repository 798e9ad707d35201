"""Identity and credential operations.

Domain objects are parsed with the identity SDK module handed over by the
running app (`ModuleRefs.did_sdk`) instead of a bundled copy, so parsed
objects are instances of the app's own SDK classes.

A host response missing its expected field means the user cancelled the
host-side flow (or the response was malformed); those operations return
None rather than raising.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any, Optional

import structlog

from ..bridge.dispatcher import IntentDispatcher
from ..bridge.intent import IntentEntity, IntentType
from .base import OperationModule
from .constants import (
    APP_ID_CREDENTIAL_PATH,
    DELETE_CREDENTIALS_PATH,
    GET_CREDENTIALS_OPERATION,
    HIVE_BACKUP_CREDENTIAL_PATH,
    HIVE_PROVIDER_PATH,
    IMPORT_CREDENTIALS_PATH,
    ISSUE_CREDENTIAL_PATH,
    REQUEST_CREDENTIALS_PATH,
    SIGN_DATA_OPERATION,
)

logger = structlog.get_logger()


def _field(response: Any, name: str) -> Any:
    if isinstance(response, Mapping):
        return response.get(name)
    return None


def _compact(params: dict[str, Any]) -> dict[str, Any]:
    # Unset optional arguments are left out of the envelope, not sent as null
    return {k: v for k, v in params.items() if v is not None}


class DIDOperations(OperationModule):
    @staticmethod
    def register_response_processors(dispatcher: IntentDispatcher) -> None:
        dispatcher.register_processor(
            IntentType.REQUEST_CREDENTIALS, DIDOperations.process_request_credentials_response
        )
        dispatcher.register_processor(
            IntentType.IMPORT_CREDENTIALS, DIDOperations.process_import_credentials_response
        )

    @staticmethod
    async def process_request_credentials_response(intent: IntentEntity) -> Any:
        return intent.response_payload

    @staticmethod
    async def process_import_credentials_response(intent: IntentEntity) -> Any:
        return intent.response_payload

    async def get_credentials(self, query: Mapping[str, Any]) -> Any:
        logger.debug("get_credentials_request", query=query)

        response = await self.post_message(GET_CREDENTIALS_OPERATION, dict(query))
        logger.debug("get_credentials_response", response=response)

        return self.did_sdk.VerifiablePresentation.parse(json.dumps(response))

    async def request_credentials(self, request: Mapping[str, Any]) -> Any:
        logger.debug("request_credentials_request", request=request)

        response = await self.post_url_intent(REQUEST_CREDENTIALS_PATH, {"request": request})
        logger.debug("request_credentials_response", response=response)

        presentation = _field(response, "presentation")
        if not presentation:
            logger.warning("Missing presentation. The operation was maybe cancelled.", response=response)
            return None

        return self.did_sdk.VerifiablePresentation.parse(presentation)

    async def request_credentials_v2(self, request_id: str, request: Mapping[str, Any]) -> None:
        self.launch_intent(
            request_id,
            IntentType.REQUEST_CREDENTIALS,
            lambda: self.request_credentials(request),
        )

    async def import_credentials(
        self,
        credentials: Iterable[Any],
        options: Optional[Mapping[str, Any]] = None,
    ) -> Optional[list[dict[str, Any]]]:
        """Import credentials into the host wallet.

        Credentials are sent in their JSON form (`str(credential)`). Supported
        option: `forceToPublishCredentials`.
        """
        logger.debug("import_credentials_request", options=options)

        query: dict[str, Any] = {"credentials": [json.loads(str(c)) for c in credentials]}
        if options and options.get("forceToPublishCredentials"):
            query["forceToPublishCredentials"] = True

        response = await self.post_url_intent(IMPORT_CREDENTIALS_PATH, query)
        logger.debug("import_credentials_response", response=response)

        imported = _field(response, "importedcredentials")
        if not isinstance(imported, list):
            logger.warning("Missing result data. The operation was maybe cancelled.", response=response)
            return None

        return [{"id": self.did_sdk.DIDURL.from_url(url)} for url in imported]

    async def import_credentials_v2(
        self,
        request_id: str,
        credentials: Iterable[Any],
        options: Optional[Mapping[str, Any]] = None,
    ) -> None:
        credentials = list(credentials)
        self.launch_intent(
            request_id,
            IntentType.IMPORT_CREDENTIALS,
            lambda: self.import_credentials(credentials, options),
        )

    async def sign_data(
        self,
        data: str,
        jwt_extra: Any = None,
        signature_field_name: Optional[str] = None,
    ) -> Any:
        logger.debug(
            "sign_data_request",
            data=data,
            jwt_extra=jwt_extra,
            signature_field_name=signature_field_name,
        )

        response = await self.post_message(
            SIGN_DATA_OPERATION,
            _compact(
                {"data": data, "jwtExtra": jwt_extra, "signatureFieldName": signature_field_name}
            ),
        )
        logger.debug("sign_data_response", response=response)
        return response

    async def delete_credentials(
        self,
        credential_ids: list[str],
        options: Optional[Mapping[str, Any]] = None,
    ) -> Optional[list[str]]:
        logger.debug("delete_credentials_request", credential_ids=credential_ids, options=options)

        response = await self.post_url_intent(
            DELETE_CREDENTIALS_PATH,
            _compact(
                {"credentialsids": list(credential_ids), "options": dict(options) if options else None}
            ),
        )
        logger.debug("delete_credentials_response", response=response)

        deleted = _field(response, "deletedcredentialsids")
        if not deleted:
            return None
        return deleted

    async def generate_app_id_credential(self, app_instance_did: str, app_did: str) -> Any:
        logger.debug(
            "generate_app_id_credential_request",
            app_instance_did=app_instance_did,
            app_did=app_did,
        )

        response = await self.post_url_intent(
            APP_ID_CREDENTIAL_PATH,
            {"appinstancedid": app_instance_did, "appdid": app_did},
        )
        logger.debug("generate_app_id_credential_response", response=response)
        return self._parse_credential(response)

    async def update_hive_vault_address(self, vault_address: str, display_name: str) -> Any:
        logger.debug(
            "update_hive_vault_address_request",
            vault_address=vault_address,
            display_name=display_name,
        )

        response = await self.post_url_intent(
            HIVE_PROVIDER_PATH,
            {"address": vault_address, "name": display_name},
        )
        logger.debug("update_hive_vault_address_response", response=response)

        status = _field(response, "status")
        if not status:
            return None
        return status

    async def issue_credential(
        self,
        holder: str,
        types: list[str],
        subject: Mapping[str, Any],
        identifier: Optional[str] = None,
        expiration_date: Optional[str] = None,
    ) -> Any:
        logger.debug(
            "issue_credential_request",
            holder=holder,
            types=types,
            identifier=identifier,
            expiration_date=expiration_date,
        )

        response = await self.post_url_intent(
            ISSUE_CREDENTIAL_PATH,
            _compact(
                {
                    "subjectdid": holder,
                    "types": list(types),
                    "properties": dict(subject),
                    "identifier": identifier,
                    "expirationDate": expiration_date,
                }
            ),
        )
        logger.debug("issue_credential_response", response=response)
        return self._parse_credential(response)

    async def generate_hive_backup_credential(
        self,
        source_hive_node_did: str,
        target_hive_node_did: str,
        target_node_url: str,
    ) -> Any:
        logger.debug(
            "generate_hive_backup_credential_request",
            source_hive_node_did=source_hive_node_did,
            target_hive_node_did=target_hive_node_did,
            target_node_url=target_node_url,
        )

        response = await self.post_url_intent(
            HIVE_BACKUP_CREDENTIAL_PATH,
            {
                "sourceHiveNodeDID": source_hive_node_did,
                "targetHiveNodeDID": target_hive_node_did,
                "targetNodeURL": target_node_url,
            },
        )
        logger.debug("generate_hive_backup_credential_response", response=response)
        return self._parse_credential(response)

    def _parse_credential(self, response: Any) -> Any:
        credential = _field(response, "credential")
        if not credential:
            return None
        return self.did_sdk.VerifiableCredential.parse(credential)
