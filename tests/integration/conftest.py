from __future__ import annotations

import os
import urllib.request
from typing import Any, Callable

import pytest


def _localstack_healthy(endpoint_url: str) -> bool:
    url = endpoint_url.rstrip("/") + "/_localstack/health"
    try:
        with urllib.request.urlopen(url, timeout=1.5) as resp:  # nosec B310
            return 200 <= resp.status < 300
    except Exception:
        return False


@pytest.fixture(scope="session", autouse=True)
def localstack_env() -> None:
    """Point boto3 at LocalStack for the integration suite."""

    os.environ.setdefault("USE_LOCALSTACK", "true")
    os.environ.setdefault("ENDPOINT_URL", "http://localhost:4566")
    os.environ.setdefault("AWS_REGION", "eu-west-1")

    # boto3 requires some credentials to be present, even for LocalStack.
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "test")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "test")


@pytest.fixture(scope="session")
def require_localstack(localstack_env: None) -> str:
    endpoint_url = os.environ.get("ENDPOINT_URL", "http://localhost:4566")
    if not _localstack_healthy(endpoint_url):
        msg = f"LocalStack not reachable at {endpoint_url}"

        # CI starts LocalStack, so a missing instance there is a real failure.
        if os.getenv("CI") or os.getenv("GITHUB_ACTIONS") or os.getenv("REQUIRE_LOCALSTACK"):
            pytest.fail(msg, pytrace=False)

        pytest.skip(f"{msg}; skipping integration tests")
    return endpoint_url


@pytest.fixture(scope="session")
def create_table(require_localstack: str) -> Callable[..., str]:
    """Create a pay-per-request DynamoDB table once per session."""

    from src.adapters.aws import dynamodb_client

    def _create(
        name: str,
        *,
        hash_key: tuple[str, str],
        range_key: tuple[str, str] | None = None,
        indexes: list[dict[str, Any]] | None = None,
        extra_attributes: list[tuple[str, str]] | None = None,
    ) -> str:
        ddb = dynamodb_client()
        if name in ddb.list_tables().get("TableNames", []):
            return name

        attrs = [hash_key, *([range_key] if range_key else []), *(extra_attributes or [])]
        key_schema = [{"AttributeName": hash_key[0], "KeyType": "HASH"}]
        if range_key:
            key_schema.append({"AttributeName": range_key[0], "KeyType": "RANGE"})

        kwargs: dict[str, Any] = {
            "TableName": name,
            "BillingMode": "PAY_PER_REQUEST",
            "AttributeDefinitions": [
                {"AttributeName": n, "AttributeType": t} for n, t in attrs
            ],
            "KeySchema": key_schema,
        }
        if indexes:
            kwargs["GlobalSecondaryIndexes"] = indexes
        ddb.create_table(**kwargs)
        ddb.get_waiter("table_exists").wait(TableName=name)
        return name

    return _create
