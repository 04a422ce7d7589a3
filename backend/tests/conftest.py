import os
import time
from unittest.mock import AsyncMock

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.algorithms import RSAAlgorithm

# Disable rate limiting for tests
os.environ["SANKEY_PROXY_NO_RATE_LIMIT"] = "true"

from sankey_proxy.config import IdentitySettings, SessionSettings, Settings, WarehouseSettings  # noqa: E402
from sankey_proxy.models.data_models import CategoryRecord, FilterSelection, FlowRecord  # noqa: E402
from sankey_proxy.services.token_verifier import TokenVerifier  # noqa: E402

CLIENT_ID = "11111111-2222-3333-4444-555555555555"
TENANT_ID = "contoso-tenant"
KID = "test-key-1"
ISSUER = f"https://login.microsoftonline.com/{TENANT_ID}/v2.0"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(scope="session")
def rsa_private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def jwks(rsa_private_key) -> dict:
    jwk = RSAAlgorithm.to_jwk(rsa_private_key.public_key(), as_dict=True)
    jwk.update({"kid": KID, "use": "sig", "alg": "RS256"})
    return {"keys": [jwk]}


@pytest.fixture
def make_token(rsa_private_key):
    """Mint an RS256 token; keyword overrides replace default claims."""

    def _make(kid: str = KID, headers: dict | None = None, **overrides) -> str:
        now = int(time.time())
        claims = {
            "aud": CLIENT_ID,
            "iss": ISSUER,
            "iat": now,
            "nbf": now,
            "exp": now + 3600,
            "preferred_username": "ada@contoso.com",
            "name": "Ada Lovelace",
            "oid": "oid-123",
        }
        claims.update(overrides)
        return jwt.encode(claims, rsa_private_key, algorithm="RS256", headers={"kid": kid, **(headers or {})})

    return _make


@pytest.fixture
def identity_settings() -> IdentitySettings:
    return IdentitySettings(client_id=CLIENT_ID, tenant_id=TENANT_ID, client_secret="s3cret")


@pytest.fixture
def settings(identity_settings) -> Settings:
    return Settings(
        identity=identity_settings,
        warehouse=WarehouseSettings(account="acme-xy123", username="svc_sankey", table="ANALYTICS.PUBLIC.FLOWS"),
        session=SessionSettings(),
    )


@pytest.fixture
def verifier(identity_settings, jwks) -> TokenVerifier:
    v = TokenVerifier(identity_settings)
    v._fetch_jwks = AsyncMock(return_value=jwks)
    return v


class FakeGateway:
    """In-memory stand-in for WarehouseGateway."""

    def __init__(self, categories=None, flows=None, configured=True):
        self.categories = categories or []
        self.flows = flows or []
        self.configured = configured
        self.selections: list[FilterSelection | None] = []
        self.error: Exception | None = None
        self.closed = False

    async def list_categories(self) -> list[CategoryRecord]:
        if self.error:
            raise self.error
        return self.categories

    async def query_flows(self, selection: FilterSelection | None = None) -> list[FlowRecord]:
        self.selections.append(selection)
        if self.error:
            raise self.error
        return self.flows

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def sample_flows() -> list[FlowRecord]:
    return [
        FlowRecord(source="A", target="B", value=5, split_category="Retail"),
        FlowRecord(source="B", target="C", value=3, split_category="Wholesale"),
    ]


@pytest.fixture
def sample_categories() -> list[CategoryRecord]:
    return [
        CategoryRecord(CATEGORY_FIELD_1="Retail", CATEGORY_FIELD_2="North", CATEGORY_FIELD_3="Q1"),
        CategoryRecord(CATEGORY_FIELD_1="Retail", CATEGORY_FIELD_2="South", CATEGORY_FIELD_3=None),
        CategoryRecord(CATEGORY_FIELD_1="Wholesale", CATEGORY_FIELD_2="North", CATEGORY_FIELD_3="Q2"),
    ]


@pytest.fixture
def fake_gateway(sample_categories, sample_flows) -> FakeGateway:
    return FakeGateway(categories=sample_categories, flows=sample_flows)
