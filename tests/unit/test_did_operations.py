"""Unit tests for identity operations and their request shaping."""

import pytest

from intentbridge.bridge.dispatcher import IntentDispatcher
from intentbridge.bridge.sink import ResponseSink
from intentbridge.bridge.transport import BridgeTransport
from intentbridge.config import BridgeConfig
from intentbridge.operations.base import ModuleRefs
from intentbridge.operations.constants import URL_INTENT_OPERATION
from intentbridge.operations.did import DIDOperations
from tests.fixtures.channels import StubChannel, by_url, echo_result
from tests.fixtures.sdk import FakeConnectivity, FakeCredential, FakeDIDSdk, Parsed


@pytest.fixture
async def make_ops(context):
    transports = []

    async def _make(responder, app_did="did:elastos:app", config=None):
        channel = StubChannel(responder)
        transport = BridgeTransport(channel, context, config)
        await transport.start()
        transports.append(transport)
        dispatcher = IntentDispatcher(context, ResponseSink(context))
        ops = DIDOperations(
            transport,
            dispatcher,
            ModuleRefs(did_sdk=FakeDIDSdk(), connectivity=FakeConnectivity(app_did)),
            config,
        )
        return ops, channel

    yield _make
    for transport in transports:
        await transport.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_url_intent_envelope_carries_caller(make_ops):
    ops, channel = await make_ops(by_url({"credissue": {"credential": '{"id": "vc1"}'}}))

    credential = await ops.issue_credential("did:elastos:holder", ["T"], {"name": "n"})

    assert credential == Parsed("credential", {"id": "vc1"})
    sent = channel.sent[0]
    assert sent.operation == URL_INTENT_OPERATION
    assert sent.parameters["url"] == "https://did.elastos.net/credissue"
    assert sent.parameters["params"] == {
        "subjectdid": "did:elastos:holder",
        "types": ["T"],
        "properties": {"name": "n"},
        "caller": "did:elastos:app",
    }


@pytest.mark.unit
@pytest.mark.asyncio
async def test_caller_omitted_without_application_did(make_ops):
    ops, channel = await make_ops(by_url({"sethiveprovider": {"status": "published"}}), app_did=None)

    assert await ops.update_hive_vault_address("https://vault", "My vault") == "published"
    assert channel.sent[0].parameters["params"] == {"address": "https://vault", "name": "My vault"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_url_intent_base_is_configurable(make_ops):
    config = BridgeConfig(url_intent_base="https://host.local/")
    ops, channel = await make_ops(by_url({"creddelete": {"deletedcredentialsids": ["c1"]}}), config=config)

    assert await ops.delete_credentials(["c1"]) == ["c1"]
    assert channel.sent[0].parameters["url"] == "https://host.local/creddelete"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_caller_params_are_not_mutated(make_ops):
    ops, channel = await make_ops(by_url({"custom": {"ok": True}}))
    params = {"x": 1}

    assert await ops.post_url_intent("custom", params) == {"ok": True}

    assert params == {"x": 1}
    assert channel.sent[0].parameters["params"] == {"x": 1, "caller": "did:elastos:app"}


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize(
    "call",
    [
        lambda ops: ops.request_credentials({}),
        lambda ops: ops.import_credentials([]),
        lambda ops: ops.delete_credentials(["c1"]),
        lambda ops: ops.generate_app_id_credential("did:a", "did:b"),
        lambda ops: ops.update_hive_vault_address("addr", "name"),
        lambda ops: ops.issue_credential("did:h", [], {}),
        lambda ops: ops.generate_hive_backup_credential("did:s", "did:t", "https://t"),
    ],
)
async def test_missing_field_resolves_to_none(make_ops, call):
    ops, _ = await make_ops(echo_result({}))
    assert await call(ops) is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_null_host_response_resolves_to_none(make_ops):
    ops, _ = await make_ops(echo_result(None))
    assert await ops.request_credentials({}) is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_credentials_parses_whole_response(make_ops):
    ops, channel = await make_ops(echo_result({"verifiableCredential": []}))

    presentation = await ops.get_credentials({"claims": {"email": True}})

    assert presentation == Parsed("presentation", {"verifiableCredential": []})
    assert channel.sent[0].operation == "elastos_getCredentials"
    assert channel.sent[0].parameters == {"claims": {"email": True}}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_import_credentials_serializes_and_maps_urls(make_ops):
    ops, channel = await make_ops(by_url({"credimport": {"importedcredentials": ["did:x#c1"]}}))

    imported = await ops.import_credentials(
        [FakeCredential({"id": "did:x#c1"})], {"forceToPublishCredentials": True}
    )

    assert imported == [{"id": Parsed("didurl", "did:x#c1")}]
    params = channel.sent[0].parameters["params"]
    assert params["credentials"] == [{"id": "did:x#c1"}]
    assert params["forceToPublishCredentials"] is True


@pytest.mark.unit
@pytest.mark.asyncio
async def test_import_credentials_rejects_non_list_result(make_ops):
    ops, _ = await make_ops(by_url({"credimport": {"importedcredentials": "did:x#c1"}}))
    assert await ops.import_credentials([]) is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_sign_data_returns_response_as_is(make_ops):
    signed = {"signature": "sig", "jwtExtra": None}
    ops, channel = await make_ops(echo_result(signed))

    assert await ops.sign_data("payload", {"k": "v"}, "sig") == signed
    assert channel.sent[0].operation == "elastos_signData"
    assert channel.sent[0].parameters == {
        "data": "payload",
        "jwtExtra": {"k": "v"},
        "signatureFieldName": "sig",
    }


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unset_optional_arguments_are_left_out(make_ops):
    ops, channel = await make_ops(
        by_url(
            {
                "elastos_signData": {"signature": "sig"},
                "creddelete": {"deletedcredentialsids": ["c1"]},
                "credissue": {"credential": "{}"},
            }
        ),
        app_did=None,
    )

    await ops.sign_data("payload")
    await ops.delete_credentials(["c1"])
    await ops.issue_credential("did:elastos:holder", ["T"], {}, identifier="vc-1")

    assert channel.sent[0].parameters == {"data": "payload"}
    assert channel.sent[1].parameters["params"] == {"credentialsids": ["c1"]}
    assert channel.sent[2].parameters["params"] == {
        "subjectdid": "did:elastos:holder",
        "types": ["T"],
        "properties": {},
        "identifier": "vc-1",
    }
