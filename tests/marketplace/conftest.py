import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def marketplace_bed():
    from marketplace.domain import marketplace

    bed = DomainFixture(marketplace)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(marketplace_bed):
    with marketplace_bed.domain_context():
        yield


@pytest.fixture()
def gateway():
    """A fresh FakeGateway installed as the active payment gateway."""
    from marketplace.gateway import FakeGateway, set_gateway

    fake = FakeGateway()
    set_gateway(fake)
    return fake
