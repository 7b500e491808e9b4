"""
Fixtures for vestledger tests
"""
import pytest

from vestledger.core.access_control import Ownable, PauseGate
from vestledger.core.contracts.erc20 import ERC20Token
from vestledger.core.contracts.token_vesting import TokenVesting
from vestledger.core.vesting.events import RecordingEventSink

from tests.vestledger_tests.helpers import FUNDING, OWNER, FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def token():
    token = ERC20Token(name="Vesting Token", symbol="VEST", owner=OWNER)
    token.mint(OWNER, OWNER, 10**24)
    return token


@pytest.fixture
def authority():
    return Ownable(OWNER)


@pytest.fixture
def gate(authority):
    return PauseGate(authority)


@pytest.fixture
def sink():
    return RecordingEventSink()


@pytest.fixture
def ledger(token, authority, gate, sink, clock):
    """Ledger holding FUNDING base units in custody."""
    vesting = TokenVesting(
        token=token,
        authority=authority,
        gate=gate,
        event_sink=sink,
        time_provider=clock,
    )
    token.transfer(OWNER, vesting.address, FUNDING)
    return vesting
