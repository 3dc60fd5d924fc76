import pytest
from services.api.tests.helpers import Checkout, build_checkout


@pytest.fixture()
def checkout() -> Checkout:
    return build_checkout()
