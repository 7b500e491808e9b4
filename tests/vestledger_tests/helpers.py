"""
Shared addresses, time constants and test doubles for ledger tests.
"""

OWNER = "0x" + "aa" * 20
ALICE = "0x" + "a1" * 20
BOB = "0x" + "b0" * 20
MALLORY = "0x" + "ee" * 20

T0 = 1_700_000_000
DAY = 86_400
YEAR = 365 * DAY

FUNDING = 1_000_000


class FakeClock:
    """Settable time provider."""

    def __init__(self, now: int = T0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now


class FailingToken:
    """Token wrapper whose transfers can be made to return False or raise."""

    def __init__(self, inner, mode: str = "ok"):
        self.inner = inner
        self.mode = mode
        self.calls = []

    @property
    def address(self) -> str:
        return self.inner.address

    def balance_of(self, account: str) -> int:
        return self.inner.balance_of(account)

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        self.calls.append((sender, recipient, amount))
        if self.mode == "false":
            return False
        if self.mode == "raise":
            raise RuntimeError("transfer backend unavailable")
        return self.inner.transfer(sender, recipient, amount)


class ReentrantToken:
    """Token wrapper that calls back into the ledger during a transfer."""

    def __init__(self, inner, attack):
        self.inner = inner
        self.attack = attack
        self.attack_errors = []
        self.propagate = False

    @property
    def address(self) -> str:
        return self.inner.address

    def balance_of(self, account: str) -> int:
        return self.inner.balance_of(account)

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        try:
            self.attack()
        except Exception as exc:
            self.attack_errors.append(exc)
            if self.propagate:
                raise
        return self.inner.transfer(sender, recipient, amount)
