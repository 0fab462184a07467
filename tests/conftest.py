import os

import pytest

# Handlers read these at import time, so they are set before any test module loads
os.environ["AWS_REGION"] = "us-east-1"
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ["AWS_SECURITY_TOKEN"] = "testing"
os.environ["AWS_SESSION_TOKEN"] = "testing"
os.environ["SUBSCRIPTION_TABLE_NAME"] = "test-subscription-table"
os.environ["CONTENT_TABLE_NAME"] = "test-content-table"
os.environ["PROVIDER_TABLE_NAME"] = "test-provider-table"
os.environ["PACKAGE_TABLE_NAME"] = "test-package-table"
os.environ["CONTENT_BUCKET_NAME"] = "test-content-bucket"
os.environ["POWERTOOLS_SERVICE_NAME"] = "coachgate-test"

from coachgate.services.aws import clear_aws_caches  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_aws_clients():
    """Every test gets clients bound to its own moto mock."""
    clear_aws_caches()
    yield
    clear_aws_caches()
