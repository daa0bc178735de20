"""
CredentialProvider 테스트

MSAL 애플리케이션은 app_factory로 주입한 가짜 객체로 대체합니다.
"""

import pytest

from infra.core.credential_provider import (
    CredentialProvider,
    TokenFailure,
    TokenFailureKind,
)
from infra.core.exceptions import AuthError, InitError
from tests.fakes import ACCOUNT, FakeMsalApp


def make_provider(tmp_path, app: FakeMsalApp, client_id: str = "client-id-1234") -> CredentialProvider:
    return CredentialProvider(
        client_id=client_id,
        authority="https://login.microsoftonline.com/common",
        scopes=["Mail.Read"],
        cache_path=tmp_path / "msal_token_cache.json",
        app_factory=app.factory,
    )


class TestTokenFailure:
    """TokenFailure.from_result() 분류 테스트"""

    def test_success_is_none(self):
        assert TokenFailure.from_result({"access_token": "abc"}) is None

    def test_none_result_needs_interaction(self):
        failure = TokenFailure.from_result(None)
        assert failure.kind is TokenFailureKind.NEEDS_INTERACTION
        assert failure.error == "no_cached_token"

    @pytest.mark.parametrize(
        "error", ["interaction_required", "login_required", "consent_required", "invalid_grant"]
    )
    def test_interaction_errors(self, error):
        failure = TokenFailure.from_result({"error": error, "error_description": "AADSTS50076"})
        assert failure.needs_interaction
        assert failure.description == "AADSTS50076"

    def test_other_error(self):
        failure = TokenFailure.from_result({"error": "invalid_client"})
        assert failure.kind is TokenFailureKind.OTHER

    def test_missing_error_code(self):
        failure = TokenFailure.from_result({})
        assert failure.kind is TokenFailureKind.OTHER
        assert failure.error == "unknown_error"


class TestInitialize:
    """initialize() 테스트"""

    @pytest.mark.asyncio
    async def test_missing_client_id(self, tmp_path):
        """클라이언트 ID가 없으면 InitError"""
        provider = make_provider(tmp_path, FakeMsalApp(), client_id="")
        with pytest.raises(InitError) as exc_info:
            await provider.initialize()
        assert exc_info.value.details["config_key"] == "AZURE_CLIENT_ID"
        assert not provider.is_initialized

    @pytest.mark.asyncio
    async def test_factory_failure(self, tmp_path):
        """MSAL 생성 실패도 InitError"""

        def broken_factory(*args, **kwargs):
            raise ValueError("invalid authority")

        provider = CredentialProvider(
            client_id="client-id-1234",
            cache_path=tmp_path / "cache.json",
            app_factory=broken_factory,
        )
        with pytest.raises(InitError, match="invalid authority"):
            await provider.initialize()

    @pytest.mark.asyncio
    async def test_idempotent(self, tmp_path):
        """여러 번 호출해도 애플리케이션은 한 번만 생성"""
        app = FakeMsalApp(accounts=[ACCOUNT])
        provider = make_provider(tmp_path, app)

        await provider.initialize()
        await provider.initialize()

        assert len(app.factory_calls) == 1
        call = app.factory_calls[0]
        assert call["client_id"] == "client-id-1234"
        assert call["authority"] == "https://login.microsoftonline.com/common"
        assert call["token_cache"] is not None


class TestGetToken:
    """get_token() 테스트"""

    @pytest.mark.asyncio
    async def test_silent_success(self, tmp_path):
        """캐시된 계정이 있으면 무음 획득만 수행"""
        app = FakeMsalApp(accounts=[ACCOUNT])
        provider = make_provider(tmp_path, app)

        token = await provider.get_token()

        assert token == "silent-token"
        assert len(app.silent_calls) == 1
        assert app.silent_calls[0]["account"] == ACCOUNT
        assert app.silent_calls[0]["scopes"] == ["Mail.Read"]
        assert app.interactive_calls == []

    @pytest.mark.asyncio
    async def test_interaction_required_retries_once(self, tmp_path):
        """상호작용 필요 응답이면 대화형 획득을 정확히 한 번 시도"""
        app = FakeMsalApp(
            accounts=[ACCOUNT],
            silent_results=[{"error": "interaction_required", "error_description": "MFA"}],
        )
        provider = make_provider(tmp_path, app)

        token = await provider.get_token()

        assert token == "interactive-token"
        assert len(app.interactive_calls) == 1
        assert app.interactive_calls[0]["login_hint"] == "user@example.com"

    @pytest.mark.asyncio
    async def test_no_cached_token_goes_interactive(self, tmp_path):
        """무음 획득이 None이면 대화형 획득"""
        app = FakeMsalApp(accounts=[ACCOUNT], silent_results=[None])
        provider = make_provider(tmp_path, app)

        assert await provider.get_token() == "interactive-token"
        assert len(app.interactive_calls) == 1

    @pytest.mark.asyncio
    async def test_interactive_failure_not_retried(self, tmp_path):
        """대화형 획득도 실패하면 다시 시도하지 않고 AuthError"""
        app = FakeMsalApp(
            accounts=[ACCOUNT],
            silent_results=[{"error": "interaction_required"}],
            interactive_result={"error": "interaction_required", "error_description": "still"},
        )
        provider = make_provider(tmp_path, app)

        with pytest.raises(AuthError):
            await provider.get_token()
        assert len(app.interactive_calls) == 1

    @pytest.mark.asyncio
    async def test_other_error_raises(self, tmp_path):
        """상호작용과 무관한 실패는 대화형 획득 없이 AuthError"""
        app = FakeMsalApp(
            accounts=[ACCOUNT],
            silent_results=[{"error": "invalid_client", "error_description": "bad secret"}],
        )
        provider = make_provider(tmp_path, app)

        with pytest.raises(AuthError) as exc_info:
            await provider.get_token()

        assert "bad secret" in exc_info.value.message
        assert exc_info.value.details["error"] == "invalid_client"
        assert app.interactive_calls == []

    @pytest.mark.asyncio
    async def test_sign_in_when_no_account(self, tmp_path):
        """캐시된 계정이 없으면 대화형 로그인 후 무음 획득"""
        app = FakeMsalApp()
        provider = make_provider(tmp_path, app)

        token = await provider.get_token()

        assert token == "silent-token"
        assert len(app.interactive_calls) == 1
        assert "login_hint" not in app.interactive_calls[0]
        assert app.silent_calls[0]["account"] == ACCOUNT

    @pytest.mark.asyncio
    async def test_cancelled_sign_in(self, tmp_path):
        """로그인 창을 닫으면 INTERACTION_CANCELLED"""
        app = FakeMsalApp(interactive_result={"error": "access_denied"})
        provider = make_provider(tmp_path, app)

        with pytest.raises(AuthError) as exc_info:
            await provider.get_token()

        assert exc_info.value.error_code == "INTERACTION_CANCELLED"
        assert app.silent_calls == []

    @pytest.mark.asyncio
    async def test_explicit_scopes(self, tmp_path):
        """요청 스코프가 기본 스코프보다 우선"""
        app = FakeMsalApp(accounts=[ACCOUNT])
        provider = make_provider(tmp_path, app)

        await provider.get_token(["Mail.ReadWrite"])

        assert app.silent_calls[0]["scopes"] == ["Mail.ReadWrite"]


class TestSignOut:
    """sign_out() 테스트"""

    @pytest.mark.asyncio
    async def test_removes_accounts(self, tmp_path):
        app = FakeMsalApp(accounts=[ACCOUNT])
        provider = make_provider(tmp_path, app)

        await provider.sign_out()

        assert app.accounts == []
        assert await provider.get_cached_account() is None


class TestSaveCache:
    """토큰 캐시 저장 테스트"""

    @pytest.mark.asyncio
    async def test_write_failure_is_auth_error(self, tmp_path):
        """캐시 디렉토리를 만들 수 없으면 AuthError"""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")
        provider = CredentialProvider(
            client_id="client-id-1234",
            scopes=["Mail.Read"],
            cache_path=blocker / "msal_token_cache.json",
            app_factory=FakeMsalApp(accounts=[ACCOUNT]).factory,
        )
        await provider.initialize()
        provider._cache.has_state_changed = True

        with pytest.raises(AuthError) as exc_info:
            await provider.get_token()

        assert "토큰 캐시 저장 실패" in exc_info.value.message
        assert exc_info.value.details["cache_path"] == str(blocker / "msal_token_cache.json")
