"""
Handoff Helper Tests
====================
End-to-end pipeline behavior against fake verifiers.
"""

import asyncio

import pytest

from handoff_auth.config.settings import HandoffSettings
from handoff_auth.exceptions import ChannelCreationError
from handoff_auth.helper import STREAMING_PAYLOAD, HandoffHelper
from handoff_auth.models import AuthParamMode, ErrorCode, ErrorKind

from .helpers import V2_AUTH, V4_AUTH, FakeVerifier, RecordingFactory, make_tx

V2_PRESIGNED = "/bucket/key?AWSAccessKeyId=AKID&Signature=sig&Expires=1000"


async def make_helper(verifier=None, now=0, **settings):
    verifier = verifier or FakeVerifier(accept={V4_AUTH: "testid", V2_AUTH: "testid"})
    helper = HandoffHelper(
        HandoffSettings(endpoint="fake:1", **settings),
        verifier_factory=lambda transport, endpoint, backoff, timeout: verifier,
        clock=lambda: now,
    )
    await helper.init()
    return helper, verifier


class TestScenarios:
    """Reference authentication scenarios."""

    @pytest.mark.asyncio
    async def test_v4_header_accepted(self):
        """A V4 header the service accepts returns its subject id."""
        helper, verifier = await make_helper()

        result = await helper.auth(make_tx(headers={"Authorization": V4_AUTH}), access_key_id="AKID")

        assert result.is_ok
        assert result.user_id == "testid"
        assert result.has_signing_key is False
        assert len(verifier.calls) == 1

    @pytest.mark.asyncio
    async def test_altered_signature_rejected(self):
        """One changed character of the signature is a mismatch."""
        helper, _ = await make_helper()
        altered = V4_AUTH[:-1] + "4"

        result = await helper.auth(make_tx(headers={"Authorization": altered}))

        assert result.err_type is ErrorKind.AUTH
        assert result.code is ErrorCode.SIGNATURE_NO_MATCH
        assert result.message == "signature mismatch"

    @pytest.mark.asyncio
    async def test_expired_presigned_url(self):
        """now=1001 is past Expires=1000."""
        helper, verifier = await make_helper(now=1001, enable_presigned_expiry_check=True)

        result = await helper.auth(make_tx(V2_PRESIGNED))

        assert result.err_type is ErrorKind.AUTH
        assert "expired" in result.message
        assert verifier.calls == []

    @pytest.mark.asyncio
    async def test_unexpired_presigned_url(self):
        """now=999 is before expiry and the synthesized V2 header is accepted."""
        helper, verifier = await make_helper(now=999, enable_presigned_expiry_check=True)

        result = await helper.auth(make_tx(V2_PRESIGNED))

        assert result.is_ok
        assert verifier.calls[0].authorization == V2_AUTH

    @pytest.mark.asyncio
    async def test_chunked_upload_disabled(self):
        """Streaming uploads are refused before any network call."""
        helper, verifier = await make_helper(enable_chunked_upload=False)
        tx = make_tx(method="PUT", headers={
            "Authorization": V4_AUTH,
            "X-Amz-Content-SHA256": STREAMING_PAYLOAD,
        })

        result = await helper.auth(tx)

        assert result.err_type is ErrorKind.AUTH
        assert result.message == "chunked upload disabled"
        assert verifier.calls == []

    @pytest.mark.asyncio
    async def test_signing_key_fetch_failure(self):
        """A verified chunked upload still fails without its signing key."""
        helper, verifier = await make_helper(
            FakeVerifier(accept={V4_AUTH: "testid"}, signing_key=None)
        )
        tx = make_tx(method="PUT", headers={
            "Authorization": V4_AUTH,
            "X-Amz-Content-SHA256": STREAMING_PAYLOAD,
        })

        result = await helper.auth(tx)

        assert result.err_type is ErrorKind.AUTH
        assert "failed to fetch signing key" in result.message
        assert len(verifier.calls) == 1
        assert verifier.key_calls == [(V4_AUTH, "tx-0001")]


class TestPipelineGates:
    """Tests for each gate in the pipeline."""

    @pytest.mark.asyncio
    async def test_signing_key_attached(self):
        helper, _ = await make_helper(FakeVerifier(accept={V4_AUTH: "testid"}, signing_key=b"k3y"))
        tx = make_tx(method="PUT", headers={
            "Authorization": V4_AUTH,
            "X-Amz-Content-SHA256": STREAMING_PAYLOAD,
        })

        result = await helper.auth(tx)

        assert result.is_ok
        assert result.signing_key == b"k3y"

    @pytest.mark.asyncio
    async def test_no_key_fetch_for_plain_upload(self):
        helper, verifier = await make_helper(FakeVerifier(accept={V4_AUTH: "testid"}, signing_key=b"k"))
        tx = make_tx(headers={"Authorization": V4_AUTH, "X-Amz-Content-SHA256": "UNSIGNED-PAYLOAD"})

        result = await helper.auth(tx)

        assert result.is_ok
        assert verifier.key_calls == []

    @pytest.mark.asyncio
    async def test_no_key_fetch_after_failed_verification(self):
        helper, verifier = await make_helper(FakeVerifier(accept={}, signing_key=b"k"))
        tx = make_tx(headers={"Authorization": V4_AUTH, "X-Amz-Content-SHA256": STREAMING_PAYLOAD})

        result = await helper.auth(tx)

        assert result.code is ErrorCode.SIGNATURE_NO_MATCH
        assert verifier.key_calls == []

    @pytest.mark.asyncio
    async def test_missing_client_io(self):
        helper, verifier = await make_helper()

        result = await helper.auth(make_tx(headers={"Authorization": V4_AUTH}, client_io=None))

        assert result.err_type is ErrorKind.INTERNAL
        assert "cio" in result.message
        assert verifier.calls == []

    @pytest.mark.asyncio
    async def test_missing_credential(self):
        helper, verifier = await make_helper()

        result = await helper.auth(make_tx("/bucket/key?AWSAccessKeyId=AKID"))

        assert result.err_type is ErrorKind.AUTH
        assert result.code is ErrorCode.ACCESS_DENIED
        assert verifier.calls == []

    @pytest.mark.asyncio
    async def test_v2_disabled_makes_no_call(self):
        """Disabling V2 denies V2 credentials locally."""
        helper, verifier = await make_helper(enable_signature_v2=False)

        header_result = await helper.auth(make_tx(headers={"Authorization": V2_AUTH}))
        presigned_result = await helper.auth(make_tx(V2_PRESIGNED))

        for result in (header_result, presigned_result):
            assert result.err_type is ErrorKind.AUTH
            assert "V2 signatures disabled" in result.message
        assert verifier.calls == []

    @pytest.mark.asyncio
    async def test_v2_disabled_allows_v4(self):
        helper, _ = await make_helper(enable_signature_v2=False)
        result = await helper.auth(make_tx(headers={"Authorization": V4_AUTH}))
        assert result.is_ok

    @pytest.mark.asyncio
    async def test_expiry_check_disabled_by_default(self):
        """Expired URLs reach the service when the check is off."""
        helper, verifier = await make_helper(now=5000)

        result = await helper.auth(make_tx(V2_PRESIGNED))

        assert result.is_ok
        assert len(verifier.calls) == 1

    @pytest.mark.asyncio
    async def test_expiry_not_applied_to_headers(self):
        """The expiry check only concerns presigned URLs."""
        helper, _ = await make_helper(now=5000, enable_presigned_expiry_check=True)
        tx = make_tx("/bucket/key?Expires=1000", headers={"Authorization": V2_AUTH})

        assert (await helper.auth(tx)).is_ok

    @pytest.mark.asyncio
    async def test_unrecognized_credential_is_forwarded(self):
        helper, verifier = await make_helper()

        result = await helper.auth(make_tx(headers={"Authorization": "Bearer abc"}))

        assert result.code is ErrorCode.SIGNATURE_NO_MATCH
        assert verifier.calls[0].authorization == "Bearer abc"

    @pytest.mark.asyncio
    async def test_verifier_exception_is_internal(self):
        """Nothing raises out of auth()."""
        helper, _ = await make_helper(FakeVerifier(error=RuntimeError("boom")))

        result = await helper.auth(make_tx(headers={"Authorization": V4_AUTH}))

        assert result.err_type is ErrorKind.INTERNAL
        assert result.code is ErrorCode.INTERNAL_ERROR

    @pytest.mark.asyncio
    async def test_no_channel(self):
        helper = HandoffHelper(HandoffSettings(endpoint="fake:1"), verifier_factory=None)

        result = await helper.auth(make_tx(headers={"Authorization": V4_AUTH}))

        assert result.err_type is ErrorKind.INTERNAL
        assert "channel" in result.message

    @pytest.mark.asyncio
    async def test_request_fields_forwarded(self):
        helper, verifier = await make_helper()

        await helper.auth(
            make_tx(headers={"Authorization": V4_AUTH}, trans_id="tx-9"),
            access_key_id="AKID",
            string_to_sign="sts",
        )

        request = verifier.calls[0]
        assert request.trans_id == "tx-9"
        assert request.access_key_id == "AKID"
        assert request.string_to_sign == "sts"
        assert request.authorization == V4_AUTH


class TestContextPolicy:
    """Tests for the authorization context policy."""

    @pytest.mark.asyncio
    async def test_always_sends_context(self):
        helper, verifier = await make_helper()

        await helper.auth(make_tx("/bucket/obj", headers={"Authorization": V4_AUTH}))

        ctx = verifier.calls[0].context
        assert ctx is not None
        assert ctx.bucket_name == "bucket"

    @pytest.mark.asyncio
    async def test_never_sends_no_context(self):
        helper, verifier = await make_helper(authparam_always=False, authparam_withtoken=False)

        await helper.auth(make_tx(headers={"Authorization": V4_AUTH}), session_token="tok")

        assert verifier.calls[0].context is None

    @pytest.mark.asyncio
    async def test_withtoken_requires_session_token(self):
        helper, verifier = await make_helper(authparam_always=False, authparam_withtoken=True)

        await helper.auth(make_tx(headers={"Authorization": V4_AUTH}))
        await helper.auth(make_tx(headers={"Authorization": V4_AUTH}), session_token="tok")

        assert verifier.calls[0].context is None
        assert verifier.calls[1].context is not None

    @pytest.mark.asyncio
    async def test_invalid_context_is_dropped(self):
        """A bad context degrades to no context rather than failing."""
        helper, verifier = await make_helper()

        result = await helper.auth(make_tx(method="", headers={"Authorization": V4_AUTH}))

        assert result.is_ok
        assert verifier.calls[0].context is None

    @pytest.mark.asyncio
    async def test_mode_change_applies_to_next_call(self):
        helper, verifier = await make_helper()
        helper.config.set_authorization_mode(AuthParamMode.NEVER)

        await helper.auth(make_tx(headers={"Authorization": V4_AUTH}))

        assert verifier.calls[0].context is None


class TestInit:
    @pytest.mark.asyncio
    async def test_init_failure_is_fatal(self):
        helper = HandoffHelper(HandoffSettings(transport="http", endpoint="not a url"))

        with pytest.raises(ChannelCreationError):
            await helper.init()

    @pytest.mark.asyncio
    async def test_init_endpoint_override(self):
        built = []

        def factory(transport, endpoint, backoff, timeout):
            built.append(endpoint)
            return FakeVerifier(endpoint=endpoint)

        helper = HandoffHelper(HandoffSettings(endpoint="fake:1"), verifier_factory=factory)
        await helper.init("fake:2")

        assert built == ["fake:2"]
        assert helper.config.endpoint == "fake:2"
        await helper.aclose()

    def test_synthesize_and_expiry_helpers(self):
        helper = HandoffHelper(HandoffSettings(endpoint="fake:1"))
        tx = make_tx(V2_PRESIGNED)

        assert helper.synthesize_auth_header(tx) == V2_AUTH
        assert helper.valid_presigned_time(tx, 1000) is True
        assert helper.valid_presigned_time(tx, 1001) is False


class TestChannelSwap:
    """Endpoint changes while an authentication is in flight."""

    @pytest.mark.asyncio
    async def test_old_channel_held_until_chunked_auth_finishes(self):
        """The replaced verifier still serves the signing key fetch."""
        gate = asyncio.Event()
        factory = RecordingFactory(accept={V4_AUTH: "testid"}, signing_key=b"k3y", gate=gate)
        helper = HandoffHelper(
            HandoffSettings(endpoint="fake:1", channel_close_grace=0.0),
            verifier_factory=factory,
        )
        await helper.init()
        old = factory.built[0]
        tx = make_tx(method="PUT", headers={
            "Authorization": V4_AUTH,
            "X-Amz-Content-SHA256": STREAMING_PAYLOAD,
        })

        task = asyncio.ensure_future(helper.auth(tx))
        while not old.calls:
            await asyncio.sleep(0)
        assert await helper.config.set_channel_uri("fake:2") is True
        for _ in range(5):
            await asyncio.sleep(0)

        assert old.closed is False
        assert helper.config.in_use(old) == 1

        gate.set()
        result = await task

        assert result.is_ok
        assert result.signing_key == b"k3y"
        assert old.key_calls == [(V4_AUTH, "tx-0001")]
        for _ in range(5):
            await asyncio.sleep(0)
        assert old.closed is True
        assert helper.config.in_use(old) == 0
        await helper.aclose()
        assert factory.built[1].closed is True
